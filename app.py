import datetime as dt
import logging
import os
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

import matplotlib
from matplotlib.backends.backend_tkagg import FigureCanvasTkAgg
from matplotlib.figure import Figure
from PIL import Image, ImageTk, UnidentifiedImageError

import calendar_grid
from app_logging import configure_logging
from entries import WeightUnit, format_date
from entry_editor import FIELD_LABELS, PERCENT_FIELDS, EditorState, EntryEditor
from entry_store import EntryNotFoundError, EntryStore, StorageError
from trends import build_series, interpolate_series, moving_average


APP_DIR = os.path.join(os.path.expanduser("~"), ".weight_tracker")
DB_PATH = os.path.join(APP_DIR, "entries.sqlite")
IMAGES_DIR = os.path.join(APP_DIR, "images")
ERROR_DISPLAY_MS = 2000
THUMBNAIL_SIZE = (160, 160)
PHOTO_FILETYPES = [("Images", "*.jpg *.jpeg *.png *.bmp *.gif *.webp"), ("All files", "*.*")]


matplotlib.use("TkAgg")

logger = logging.getLogger("weight_tracker.app")


def describe_entry(entry):
    return (
        f"Weight: {entry.weight:.1f} {entry.weight_unit.value}\n"
        f"Body fat: {entry.body_fat:g} %\n"
        f"Muscle mass: {entry.muscle_mass:g} %\n"
        f"Visceral fat: {entry.visceral_fat}"
    )


class WeightTrackerApp(tk.Tk):
    def __init__(self, store, load_error=None):
        super().__init__()
        self.title("Weight Tracker")
        self.geometry("1200x780")
        self.minsize(1050, 700)

        self.store = store
        self.editor = EntryEditor(store)
        self.current_month = dt.date.today()
        self.selected_date = dt.date.today()
        self.detail_photo = None
        self.error_job = None

        self.style = ttk.Style(self)
        self.style.theme_use("clam")
        self.style.configure("TButton", padding=6)
        self.style.configure("Day.TButton", padding=4, width=5)
        self.style.configure("Selected.Day.TButton", background="#bfdbfe")
        self.style.configure("Treeview", rowheight=24)
        self.style.configure("Heading", font=("Helvetica", 11, "bold"))
        self.style.configure("Error.TLabel", foreground="#b91c1c")

        self.create_widgets()
        self.refresh_all()

        if load_error:
            self.show_error(load_error)

    def create_widgets(self):
        root_frame = ttk.Frame(self, padding=12)
        root_frame.pack(fill=tk.BOTH, expand=True)

        top_frame = ttk.Frame(root_frame)
        top_frame.pack(fill=tk.X, pady=(0, 12))

        calendar_frame = ttk.LabelFrame(top_frame, text="Calendar", padding=12)
        calendar_frame.pack(side=tk.LEFT, fill=tk.Y, padx=(0, 12))

        form_frame = ttk.LabelFrame(top_frame, text="Entry", padding=12)
        form_frame.pack(side=tk.LEFT, fill=tk.Y, padx=(0, 12))

        detail_frame = ttk.LabelFrame(top_frame, text="Selected day", padding=12)
        detail_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)

        self.create_calendar(calendar_frame)
        self.create_form(form_frame)
        self.create_detail(detail_frame)

        self.error_var = tk.StringVar()
        ttk.Label(root_frame, textvariable=self.error_var, style="Error.TLabel").pack(
            fill=tk.X, pady=(0, 8)
        )

        bottom_frame = ttk.Frame(root_frame)
        bottom_frame.pack(fill=tk.BOTH, expand=True)

        table_frame = ttk.LabelFrame(bottom_frame, text="History", padding=12)
        table_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True, padx=(0, 12))
        self.create_table(table_frame)

        chart_frame = ttk.LabelFrame(bottom_frame, text="Trends", padding=12)
        chart_frame.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        self.create_charts(chart_frame)

    def create_calendar(self, parent):
        header = ttk.Frame(parent)
        header.pack(fill=tk.X, pady=(0, 10))
        ttk.Button(header, text="←", width=3, command=lambda: self.change_month(-1)).pack(
            side=tk.LEFT
        )
        self.month_var = tk.StringVar()
        ttk.Label(header, textvariable=self.month_var, anchor=tk.CENTER).pack(
            side=tk.LEFT, fill=tk.X, expand=True
        )
        ttk.Button(header, text="→", width=3, command=lambda: self.change_month(1)).pack(
            side=tk.RIGHT
        )

        self.days_frame = ttk.Frame(parent)
        self.days_frame.pack()

    def create_form(self, parent):
        self.date_var = tk.StringVar()
        ttk.Label(parent, text="Date").grid(row=0, column=0, sticky=tk.W)
        ttk.Label(parent, textvariable=self.date_var).grid(row=0, column=1, sticky=tk.W)

        self.field_vars = {}
        self.field_entries = {}
        for row, name in enumerate(("weight", "body_fat", "muscle_mass", "visceral_fat"), start=1):
            label = FIELD_LABELS[name]
            if name in PERCENT_FIELDS:
                label += " (%)"
            ttk.Label(parent, text=label).grid(row=row, column=0, sticky=tk.W, pady=(6, 0))
            var = tk.StringVar()
            entry = ttk.Entry(parent, textvariable=var, width=12)
            entry.grid(row=row, column=1, sticky=tk.W, padx=(12, 0), pady=(6, 0))
            entry.bind("<FocusOut>", lambda _event, field=name: self.on_leave_field(field))
            self.field_vars[name] = var
            self.field_entries[name] = entry

        self.unit_var = tk.StringVar(value=WeightUnit.KG.value)
        unit_combo = ttk.Combobox(
            parent, textvariable=self.unit_var, values=WeightUnit.labels(), width=7
        )
        unit_combo.grid(row=1, column=2, sticky=tk.W, padx=(8, 0), pady=(6, 0))
        unit_combo.state(["readonly"])
        unit_combo.bind("<<ComboboxSelected>>", self.on_unit_changed)

        photo_frame = ttk.Frame(parent)
        photo_frame.grid(row=5, column=0, columnspan=3, sticky=tk.W, pady=(10, 0))
        ttk.Button(photo_frame, text="Select photo", command=self.pick_photo).pack(side=tk.LEFT)
        self.photo_var = tk.StringVar(value="No image selected")
        ttk.Label(photo_frame, textvariable=self.photo_var, foreground="#555555").pack(
            side=tk.LEFT, padx=(8, 0)
        )

        button_frame = ttk.Frame(parent)
        button_frame.grid(row=6, column=0, columnspan=3, sticky=tk.W, pady=(10, 0))

        self.save_button = ttk.Button(button_frame, text="Save entry", command=self.save_entry)
        self.save_button.pack(side=tk.LEFT)

        clear_button = ttk.Button(button_frame, text="Clear", command=self.clear_form)
        clear_button.pack(side=tk.LEFT, padx=(8, 0))

        today_button = ttk.Button(button_frame, text="Today", command=self.set_today)
        today_button.pack(side=tk.LEFT, padx=(8, 0))

        delete_button = ttk.Button(button_frame, text="Delete day", command=self.delete_day)
        delete_button.pack(side=tk.LEFT, padx=(8, 0))

    def create_detail(self, parent):
        self.detail_var = tk.StringVar()
        ttk.Label(parent, textvariable=self.detail_var, justify=tk.LEFT).pack(anchor=tk.W)
        self.detail_image = ttk.Label(parent)
        self.detail_image.pack(anchor=tk.W, pady=(8, 0))

    def create_table(self, parent):
        columns = ("date", "weight", "unit", "body_fat", "muscle_mass", "visceral_fat", "photo")
        list_frame = ttk.Frame(parent)
        list_frame.pack(fill=tk.BOTH, expand=True)
        self.tree = ttk.Treeview(list_frame, columns=columns, show="headings", height=8)
        self.tree.heading("date", text="Date")
        self.tree.heading("weight", text="Weight")
        self.tree.heading("unit", text="Unit")
        self.tree.heading("body_fat", text="Body fat %")
        self.tree.heading("muscle_mass", text="Muscle %")
        self.tree.heading("visceral_fat", text="Visceral")
        self.tree.heading("photo", text="Photo")
        self.tree.column("date", width=100)
        for column in columns[1:]:
            self.tree.column(column, width=75)
        self.tree.pack(side=tk.LEFT, fill=tk.BOTH, expand=True)
        self.tree.bind("<Double-1>", lambda _event: self.edit_selected())

        scrollbar = ttk.Scrollbar(list_frame, orient=tk.VERTICAL, command=self.tree.yview)
        self.tree.configure(yscroll=scrollbar.set)
        scrollbar.pack(side=tk.RIGHT, fill=tk.Y)

        button_frame = ttk.Frame(parent)
        button_frame.pack(fill=tk.X, pady=(8, 0))
        ttk.Button(button_frame, text="Edit", command=self.edit_selected).pack(side=tk.LEFT)
        ttk.Button(button_frame, text="Delete", command=self.delete_selected).pack(
            side=tk.LEFT, padx=(8, 0)
        )

    def create_charts(self, parent):
        unit_frame = ttk.Frame(parent)
        unit_frame.pack(fill=tk.X)
        ttk.Label(unit_frame, text="Chart unit").pack(side=tk.LEFT)
        self.chart_unit_var = tk.StringVar(value=WeightUnit.KG.value)
        chart_unit = ttk.Combobox(
            unit_frame, textvariable=self.chart_unit_var, values=WeightUnit.labels(), width=7
        )
        chart_unit.pack(side=tk.LEFT, padx=(8, 0))
        chart_unit.state(["readonly"])
        chart_unit.bind("<<ComboboxSelected>>", lambda _event: self.refresh_charts())

        notebook = ttk.Notebook(parent)
        notebook.pack(fill=tk.BOTH, expand=True, pady=(8, 0))

        self.weight_tab = ttk.Frame(notebook)
        self.bodyfat_tab = ttk.Frame(notebook)
        self.muscle_tab = ttk.Frame(notebook)

        notebook.add(self.weight_tab, text="Weight")
        notebook.add(self.bodyfat_tab, text="Body fat")
        notebook.add(self.muscle_tab, text="Muscle mass")

        self.weight_fig, self.weight_ax = self.create_chart(self.weight_tab)
        self.bodyfat_fig, self.bodyfat_ax = self.create_chart(self.bodyfat_tab)
        self.muscle_fig, self.muscle_ax = self.create_chart(self.muscle_tab)

    def create_chart(self, parent):
        fig = Figure(figsize=(5, 3), dpi=100)
        ax = fig.add_subplot(111)
        ax.grid(True, linestyle="--", alpha=0.3)
        canvas = FigureCanvasTkAgg(fig, master=parent)
        canvas.draw()
        canvas.get_tk_widget().pack(fill=tk.BOTH, expand=True)
        fig.canvas = canvas
        return fig, ax

    def refresh_calendar(self):
        for child in self.days_frame.winfo_children():
            child.destroy()

        self.month_var.set(calendar_grid.month_title(self.current_month))
        for column, label in enumerate(calendar_grid.WEEKDAY_LABELS):
            ttk.Label(self.days_frame, text=label, font=("Helvetica", 10, "bold")).grid(
                row=0, column=column, padx=2, pady=(0, 4)
            )

        for row, week in enumerate(calendar_grid.month_weeks(self.current_month), start=1):
            for column, day in enumerate(week):
                if day is None:
                    ttk.Label(self.days_frame, text="").grid(row=row, column=column)
                    continue
                text = str(day.day)
                if self.store.has_entry(day):
                    text += " •"
                style = "Selected.Day.TButton" if day == self.selected_date else "Day.TButton"
                ttk.Button(
                    self.days_frame,
                    text=text,
                    style=style,
                    command=lambda d=day: self.select_date(d),
                ).grid(row=row, column=column, padx=1, pady=1)

    def refresh_table(self):
        for row in self.tree.get_children():
            self.tree.delete(row)

        for entry in self.store.chronological():
            self.tree.insert(
                "",
                tk.END,
                iid=entry.id,
                values=(
                    format_date(entry.date),
                    f"{entry.weight:.1f}",
                    entry.weight_unit.value,
                    f"{entry.body_fat:g}",
                    f"{entry.muscle_mass:g}",
                    entry.visceral_fat,
                    "yes" if entry.image_path else "",
                ),
            )

    def refresh_charts(self):
        entries = self.store.chronological()
        unit = WeightUnit(self.chart_unit_var.get())

        dates, values = build_series(entries, "weight", unit)
        self.plot_metric(
            self.weight_ax, self.weight_fig, dates, values, f"Weight ({unit.value})", color="#3b82f6"
        )
        dates, values = build_series(entries, "body_fat")
        self.plot_metric(
            self.bodyfat_ax, self.bodyfat_fig, dates, values, "Body fat (%)", color="#f97316"
        )
        dates, values = build_series(entries, "muscle_mass")
        self.plot_metric(
            self.muscle_ax, self.muscle_fig, dates, values, "Muscle mass (%)", color="#10b981"
        )

    def plot_metric(self, ax, fig, dates, values, label, color):
        ax.clear()
        ax.grid(True, linestyle="--", alpha=0.3)
        if not dates:
            ax.set_title("No data yet")
            fig.canvas.draw()
            return

        interpolated = interpolate_series(values)
        average = moving_average(interpolated)

        x_vals = [dt.datetime.combine(d, dt.time()) for d in dates]
        ax.plot(x_vals, interpolated, color=color, linewidth=2, label=label)
        ax.plot(x_vals, average, color="#111827", linestyle="--", label="7-day average")
        ax.set_title(label)
        ax.legend()
        fig.autofmt_xdate()
        fig.canvas.draw()

    def refresh_all(self):
        self.select_date(self.selected_date)
        self.refresh_table()
        self.refresh_charts()

    def show_detail(self):
        entry = self.store.find(self.selected_date)
        self.detail_photo = None
        self.detail_image.configure(image="")
        if entry is None:
            self.detail_var.set(f"{format_date(self.selected_date)}\nNo entry for this day.")
            return
        self.detail_var.set(f"{format_date(entry.date)}\n{describe_entry(entry)}")
        if entry.image_path and os.path.exists(entry.image_path):
            try:
                with Image.open(entry.image_path) as image:
                    image.thumbnail(THUMBNAIL_SIZE)
                    self.detail_photo = ImageTk.PhotoImage(image)
            except (OSError, UnidentifiedImageError):
                logger.warning("Could not open photo %s", entry.image_path)
                return
            self.detail_image.configure(image=self.detail_photo)

    def load_form(self):
        for name, var in self.field_vars.items():
            var.set(self.editor.fields[name])
        self.unit_var.set(self.editor.unit.value)
        self.date_var.set(format_date(self.editor.day))
        if self.editor.editing_existing:
            self.save_button.configure(text="Update entry")
        else:
            self.save_button.configure(text="Save entry")
        if self.editor.photo is not None:
            self.photo_var.set("New photo selected")
        elif self.editor.editing_existing and self.editor.entry.image_path:
            self.photo_var.set("Photo attached")
        else:
            self.photo_var.set("No image selected")

    def sync_form(self):
        for name, var in self.field_vars.items():
            self.editor.set_field(name, var.get())

    def select_date(self, day, entry=None):
        self.selected_date = day
        self.current_month = day
        if entry is None:
            entry = self.store.find(day)
        self.editor.begin(day, entry)
        self.load_form()
        self.refresh_calendar()
        self.show_detail()

    def change_month(self, delta):
        self.current_month = calendar_grid.shift_month(self.current_month, delta)
        self.refresh_calendar()

    def set_today(self):
        self.select_date(dt.date.today())

    def clear_form(self):
        self.editor.begin(self.selected_date)
        self.load_form()

    def on_leave_field(self, name):
        self.editor.set_field(name, self.field_vars[name].get())
        if not self.editor.leave_field(name):
            self.field_vars[name].set(self.editor.fields[name])
            self.show_error(self.editor.error)

    def on_unit_changed(self, _event=None):
        self.editor.set_field("weight", self.field_vars["weight"].get())
        self.editor.change_unit(self.unit_var.get())
        self.field_vars["weight"].set(self.editor.fields["weight"])

    def pick_photo(self):
        path = filedialog.askopenfilename(title="Select photo", filetypes=PHOTO_FILETYPES)
        if not path:
            return
        try:
            image = Image.open(path)
            image.load()
        except (OSError, UnidentifiedImageError):
            logger.warning("Could not open photo %s", path)
            self.show_error("Could not open the selected photo.")
            return
        self.editor.set_photo(image)
        self.photo_var.set(os.path.basename(path))

    def save_entry(self):
        self.sync_form()
        saved = self.editor.save()
        if saved is None:
            self.load_form()
            if self.editor.state is EditorState.REJECTED:
                self.show_error(self.editor.error)
            return

        self.select_date(saved.date, saved)
        self.refresh_table()
        self.refresh_charts()

    def edit_selected(self):
        selection = self.tree.selection()
        if not selection:
            return
        entry_id = selection[0]
        try:
            entry = self.store.entries[self.store.index_of(entry_id)]
        except EntryNotFoundError:
            self.refresh_table()
            return
        self.select_date(entry.date, entry)

    def delete_selected(self):
        selection = self.tree.selection()
        if not selection:
            return
        if not messagebox.askyesno("Delete entry", "Delete the selected entry?"):
            return
        try:
            self.store.remove(self.store.index_of(selection[0]))
        except EntryNotFoundError:
            logger.warning("Entry %s is no longer stored", selection[0])
        except StorageError as exc:
            logger.exception("Deleting entry failed")
            self.show_error(str(exc))
        self.refresh_all()

    def delete_day(self):
        if not self.store.has_entry(self.selected_date):
            self.show_error("No entry for this day.")
            return
        try:
            self.store.remove_on(self.selected_date)
        except StorageError as exc:
            logger.exception("Deleting day failed")
            self.show_error(str(exc))
        self.refresh_all()

    def show_error(self, message):
        self.error_var.set(message)
        if self.error_job is not None:
            self.after_cancel(self.error_job)
        self.error_job = self.after(ERROR_DISPLAY_MS, self.clear_error)

    def clear_error(self):
        self.error_job = None
        self.error_var.set("")


def main():
    configure_logging()
    store = EntryStore.open(DB_PATH, IMAGES_DIR)
    load_error = None
    if store.load_error is not None:
        logger.error("Stored entries could not be loaded, starting empty: %s", store.load_error)
        load_error = "Saved entries could not be read. Starting with an empty log."
    app = WeightTrackerApp(store, load_error=load_error)
    app.mainloop()


if __name__ == "__main__":
    main()
