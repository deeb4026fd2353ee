from __future__ import annotations

import logging
import tkinter as tk
from pathlib import Path
from tkinter import filedialog, messagebox, ttk
from typing import Any, Callable, Dict, List, Optional

from PIL import Image, ImageTk

from field_renderer import CheckboxGlyphs, ControlKind, Mode, RenderedField, renderer_for
from form_session import FormSession, LiveValue
from overlay_config import ViewerConfig
from overlay_model import Page
from overlay_scale import FieldBox, PageGeometry, ScaleEngine
from page_backgrounds import load_background_image
from signature_pad import SIGNATURE_SIZE, SignaturePad, decode_data_uri
from static_export import export_static_pdf

logger = logging.getLogger(__name__)

PAGE_GAP = 24
SIDE_PAD = 10
LABEL_COLOR = "#475467"
SIGNATURE_DISPLAY_HEIGHT = 80


def _font(size_px: Optional[float], scale: float, bold: bool = False):
    # negative sizes are pixels in Tk
    px = -max(int(round((size_px or 13) * scale)), 6)
    return ("TkDefaultFont", px, "bold") if bold else ("TkDefaultFont", px)


# ----------------------------
# Signature surface
# ----------------------------

class SignatureCanvas(tk.Canvas):
    def __init__(self, master, pad: SignaturePad, height: int = SIGNATURE_DISPLAY_HEIGHT):
        super().__init__(
            master, height=height, bg="#fff",
            highlightthickness=1, highlightbackground="#d0d5dd", cursor="pencil",
        )
        self.pad = pad
        self._photo: Optional[ImageTk.PhotoImage] = None

        self.bind("<ButtonPress-1>", self._on_down)
        self.bind("<B1-Motion>", self._on_move)
        self.bind("<ButtonRelease-1>", self._on_up)
        self.bind("<Leave>", self._on_up)
        self.bind("<Configure>", lambda _e: self.refresh())

    def _to_pad(self, e) -> tuple:
        w = max(self.winfo_width(), 1)
        h = max(self.winfo_height(), 1)
        return e.x * self.pad.width / w, e.y * self.pad.height / h

    def _on_down(self, e):
        self.pad.pointer_down(*self._to_pad(e))

    def _on_move(self, e):
        if self.pad.pointer_move(*self._to_pad(e)) is not None:
            self.refresh()

    def _on_up(self, _e):
        self.pad.pointer_up()

    def refresh(self):
        w = max(self.winfo_width(), 1)
        h = max(self.winfo_height(), 1)
        sheet = Image.new("RGBA", self.pad.image.size, (255, 255, 255, 255))
        sheet.alpha_composite(self.pad.image)
        self._photo = ImageTk.PhotoImage(sheet.resize((w, h)))
        self.delete("ink")
        self.create_image(0, 0, anchor="nw", image=self._photo, tags="ink")


# ----------------------------
# One field on a page canvas
# ----------------------------

class FieldView:
    def __init__(self, canvas: tk.Canvas, rendered: RenderedField, live: Optional[LiveValue], glyphs: CheckboxGlyphs):
        self.canvas = canvas
        self.rendered = rendered
        self.field = rendered.field
        self.glyphs = glyphs
        self._syncing = False
        self._photo: Optional[ImageTk.PhotoImage] = None
        self._image_uri: Optional[str] = None

        self.frame = tk.Frame(canvas, bg="#fff")
        builders: Dict[ControlKind, Callable[[], Any]] = {
            ControlKind.TEXT_ENTRY: self._build_entry,
            ControlKind.CHOICE: self._build_choice,
            ControlKind.TOGGLE: self._build_toggle,
            ControlKind.RADIO_GROUP: self._build_radio,
            ControlKind.DRAWING: self._build_signature,
            ControlKind.TEXT: self._build_text,
            ControlKind.IMAGE: self._build_image,
        }
        self.control = builders[rendered.kind]()

        self.window_id = canvas.create_window(0, 0, anchor="nw", window=self.frame)
        self.label_id: Optional[int] = None
        if self.field.label:
            self.label_id = canvas.create_text(
                0, 0, anchor="sw", text=self.field.label, fill=LABEL_COLOR, font=_font(12, 1.0, bold=True)
            )

        self._unsubscribe: Optional[Callable[[], None]] = live.subscribe(self._on_live) if live else None

    # -------------- builders --------------

    def _build_entry(self):
        self.var = tk.StringVar(value=str(self.rendered.value))
        entry = tk.Entry(self.frame, textvariable=self.var, relief="solid", bd=1)
        if self.rendered.style.color:
            entry.configure(fg=self.rendered.style.color)
        entry.pack(fill="both", expand=True)
        self.var.trace_add("write", lambda *_: self._emit(self.var.get()))
        return entry

    def _build_choice(self):
        self.var = tk.StringVar(value=str(self.rendered.value))
        combo = ttk.Combobox(self.frame, textvariable=self.var, values=self.rendered.options, state="readonly")
        combo.pack(fill="both", expand=True)
        combo.bind("<<ComboboxSelected>>", lambda _e: self._emit(self.var.get()))
        return combo

    def _build_toggle(self):
        self.var = tk.BooleanVar(value=bool(self.rendered.value))
        check = ttk.Checkbutton(self.frame, variable=self.var, command=lambda: self._emit(bool(self.var.get())))
        check.pack(anchor="w")
        return check

    def _build_radio(self):
        # one shared variable per field id makes the buttons one exclusive group
        self.var = tk.StringVar(value=str(self.rendered.value))
        for opt in self.rendered.options:
            ttk.Radiobutton(
                self.frame, text=opt, value=opt, variable=self.var,
                command=lambda o=opt: self._emit(o),
            ).pack(side="left", padx=(0, 10))
        return self.frame

    def _build_signature(self):
        pad = SignaturePad(on_segment=self._emit)
        pad.load(self.rendered.value)
        sig = SignatureCanvas(self.frame, pad)
        sig.pack(fill="x", expand=True)
        return sig

    def _build_text(self):
        self.var = tk.StringVar(value=self.rendered.text)
        label = tk.Label(self.frame, textvariable=self.var, anchor="w", justify="left",
                         fg=self.rendered.style.color or "#101828", bg="#fff")
        label.pack(fill="both", expand=True)
        return label

    def _build_image(self):
        label = tk.Label(self.frame, bg="#fff")
        label.pack(anchor="w")
        self._show_image(label, self.rendered.image)
        return label

    def _show_image(self, label: tk.Label, data_uri: Optional[str]):
        self._image_uri = data_uri
        img = decode_data_uri(data_uri) if data_uri else None
        if img is None:
            self._photo = None
            label.configure(image="")
            return
        img = img.convert("RGBA")
        img.thumbnail((max(int(self._box_width()), 1), SIGNATURE_DISPLAY_HEIGHT))
        self._photo = ImageTk.PhotoImage(img)
        label.configure(image=self._photo)

    def _box_width(self) -> float:
        width = float(self.canvas.itemcget(self.window_id, "width") or 0) if hasattr(self, "window_id") else 0.0
        return width if width > 0 else float(SIGNATURE_SIZE[0])

    # -------------- value flow --------------

    def _emit(self, value: Any):
        if self._syncing or self.rendered.emit is None:
            return
        self.rendered.emit(value)

    def _on_live(self, value: Any):
        kind = self.rendered.kind
        self._syncing = True
        try:
            if kind in (ControlKind.TEXT_ENTRY, ControlKind.CHOICE, ControlKind.RADIO_GROUP):
                text = "" if value is None else str(value)
                if self.var.get() != text:
                    self.var.set(text)
            elif kind is ControlKind.TOGGLE:
                self.var.set(bool(value))
            elif kind is ControlKind.TEXT:
                self.var.set(renderer_for(self.field.type).static_text(value, self.glyphs))
            elif kind is ControlKind.IMAGE:
                self._show_image(self.control, value)
            # drawing surfaces are the only writer of their own value
        finally:
            self._syncing = False

    # -------------- layout --------------

    def place(self, box: FieldBox, scale: float):
        self.canvas.coords(self.window_id, box.left, box.top)
        opts: Dict[str, Any] = {"width": max(int(box.width), 16)}
        if self.rendered.style.input_height:
            opts["height"] = max(int(self.rendered.style.input_height * scale), 12)
        self.canvas.itemconfigure(self.window_id, **opts)

        if self.rendered.kind in (ControlKind.TEXT_ENTRY, ControlKind.TEXT):
            self.control.configure(font=_font(self.rendered.style.font_size, scale))
        elif self.rendered.kind is ControlKind.IMAGE:
            self._show_image(self.control, self._image_uri)
        if self.label_id is not None:
            self.canvas.coords(self.label_id, box.left, box.top - 2)
            self.canvas.itemconfigure(self.label_id, font=_font(12, scale, bold=True))

    def destroy(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.label_id is not None:
            self.canvas.delete(self.label_id)
        self.canvas.delete(self.window_id)
        self.frame.destroy()


# ----------------------------
# One page: background + fields
# ----------------------------

class PageView:
    def __init__(self, master, page: Page, geometry: PageGeometry):
        self.page = page
        self.geometry = geometry
        self.canvas = tk.Canvas(master, highlightthickness=1, highlightbackground="#e5e9f2", bg="#fff")
        self.canvas.pack(pady=(0, PAGE_GAP))
        self.source: Optional[Image.Image] = None
        self._photo: Optional[ImageTk.PhotoImage] = None
        self._bg_id = self.canvas.create_image(0, 0, anchor="nw")
        self.field_views: List[FieldView] = []

    def populate(self, rendered: List[RenderedField], session: FormSession, glyphs: CheckboxGlyphs):
        for fv in self.field_views:
            fv.destroy()
        self.field_views = [
            FieldView(self.canvas, r, session.live(r.field.id) if r.field.id else None, glyphs)
            for r in rendered
        ]
        self.layout()

    def layout(self):
        w, h = self.geometry.displayed_size()
        w_px, h_px = max(int(w), 1), max(int(h), 1)
        self.canvas.configure(width=w_px, height=h_px)
        if self.source is not None:
            self._photo = ImageTk.PhotoImage(self.source.resize((w_px, h_px)))
            self.canvas.itemconfigure(self._bg_id, image=self._photo)
        for fv in self.field_views:
            fv.place(self.geometry.field_box(fv.field), self.geometry.scale)


# ----------------------------
# Viewer App
# ----------------------------

class OverlayViewer(tk.Tk):
    def __init__(self, session: FormSession, config: ViewerConfig, export_path: Optional[Path] = None):
        super().__init__()
        self.title("Overlay Form")
        self.geometry("1040x900")

        self.session = session
        self.config_ = config
        self.export_path = export_path
        self.engine = ScaleEngine(len(session.document.pages), config.available_width)
        self.page_views: List[PageView] = []
        self._banner_job: Optional[str] = None

        self._build_ui()
        self._render_pages()

        session.on_mode_change(lambda mode: self.after_idle(self._on_mode_changed, mode))
        # backgrounds arrive after the first layout, as with any image load
        self.after_idle(self._load_backgrounds)
        if session.mode is Mode.PDF:
            self.after_idle(self.request_export)

    # ---------------- UI ----------------

    def _build_ui(self):
        top = ttk.Frame(self)
        top.pack(side="top", fill="x", padx=8, pady=8)

        ttk.Button(top, text="Fill", command=lambda: self.session.set_mode(Mode.FILL)).pack(side="left")
        ttk.Button(top, text="Preview", command=lambda: self.session.set_mode(Mode.PREVIEW)).pack(side="left", padx=(6, 0))
        ttk.Separator(top, orient="vertical").pack(side="left", fill="y", padx=12)
        ttk.Button(top, text="Export PDF…", command=self.request_export).pack(side="left")

        self.mode_var = tk.StringVar(value=f"Mode: {self.session.mode.value}")
        ttk.Label(top, textvariable=self.mode_var).pack(side="right")

        self.banner = tk.Label(
            self, bg="#fffbeb", fg="#92400e", font=("TkDefaultFont", 11, "bold"),
            bd=1, relief="solid", padx=14, pady=10, anchor="w", justify="left",
        )

        self.main = ttk.Frame(self)
        self.main.pack(fill="both", expand=True, padx=8, pady=(0, 8))

        self.scroll_canvas = tk.Canvas(self.main, bg="#f2f4f7", highlightthickness=0)
        vbar = ttk.Scrollbar(self.main, orient="vertical", command=self.scroll_canvas.yview)
        self.scroll_canvas.configure(yscrollcommand=vbar.set)
        vbar.pack(side="right", fill="y")
        self.scroll_canvas.pack(side="left", fill="both", expand=True)

        self.pages_frame = tk.Frame(self.scroll_canvas, bg="#f2f4f7")
        self._pages_window = self.scroll_canvas.create_window(SIDE_PAD, SIDE_PAD, anchor="nw", window=self.pages_frame)

        self.scroll_canvas.bind("<Configure>", self._on_viewport_resize)
        self.scroll_canvas.bind_all("<MouseWheel>", self._on_mousewheel)

        for page, geom in zip(self.session.document.pages, self.engine.pages):
            self.page_views.append(PageView(self.pages_frame, page, geom))

    def _on_mousewheel(self, e):
        self.scroll_canvas.yview_scroll(int(-e.delta / 120) or (-1 if e.delta > 0 else 1), "units")

    # ---------------- layout ----------------

    def _available_width(self) -> float:
        return max(self.scroll_canvas.winfo_width() - 2 * SIDE_PAD - 4, 1)

    def _on_viewport_resize(self, _e=None):
        self.engine.resize(self._available_width())
        self._layout_pages()

    def _layout_pages(self):
        for pv in self.page_views:
            pv.layout()
        self.update_idletasks()
        self.scroll_canvas.configure(scrollregion=self.scroll_canvas.bbox("all"))

    def _load_backgrounds(self):
        base_dir = self.session.document.base_dir
        for index, pv in enumerate(self.page_views):
            img = load_background_image(pv.page.background, base_dir)
            if img is None:
                continue
            pv.source = img
            self.engine.image_loaded(index, img.width, img.height)
        self._layout_pages()

    # ---------------- mode / values ----------------

    def _render_pages(self):
        rendered = self.session.render_all()
        for pv, fields in zip(self.page_views, rendered):
            pv.populate(fields, self.session, self.config_.glyphs)
        self._layout_pages()

    def _on_mode_changed(self, mode: Mode):
        self.mode_var.set(f"Mode: {mode.value}")
        self._render_pages()

    # ---------------- banner ----------------

    def show_banner(self, message: str):
        self.banner.configure(text=message)
        if not self.banner.winfo_ismapped():
            self.banner.pack(side="top", fill="x", padx=8, pady=(0, 8), before=self.main)
        if self._banner_job is not None:
            self.after_cancel(self._banner_job)
        self._banner_job = self.after(self.config_.banner_timeout_ms, self._hide_banner)

    def _hide_banner(self):
        self._banner_job = None
        self.banner.pack_forget()

    # ---------------- export ----------------

    def request_export(self):
        report = self.session.request_export()
        if not report.ok:
            self.show_banner(report.message(self.config_.missing_prefix))
            return
        # let the static layout settle before writing
        self.after(self.config_.export_delay_ms, self._export)

    def _export(self):
        out = self.export_path
        if out is None:
            chosen = filedialog.asksaveasfilename(defaultextension=".pdf", filetypes=[("PDF", "*.pdf")])
            if not chosen:
                return
            out = Path(chosen)
        values = self.session.store.read_all(self.session.storage_key)
        try:
            export_static_pdf(self.session.document, values, out,
                              glyphs=self.config_.glyphs, font_path=self.config_.export_font_path)
        except (OSError, ValueError) as ex:
            logger.error("Export to %s failed: %s", out, ex)
            messagebox.showerror("Error", str(ex))
            return
        messagebox.showinfo("Done", f"PDF created:\n{out}")
