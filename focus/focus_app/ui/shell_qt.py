from __future__ import annotations

import sys
from collections.abc import Callable

from PySide6 import QtCore, QtGui, QtWidgets


def format_clock(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


class FocusShell:
    def __init__(
        self,
        on_create_task: Callable[..., object],
        on_start: Callable[[], None],
        on_pause_resume: Callable[[], None],
        on_stop: Callable[[], None],
        on_toggle_step: Callable[[str], None],
        on_add_step: Callable[[str], None],
        on_edit_step: Callable[[str, str], None] | None = None,
        on_delete_step: Callable[[str], None] | None = None,
        on_next_steps: Callable[[], object] | None = None,
        on_open_tasks: Callable[[], None] | None = None,
        on_open_settings: Callable[[], None] | None = None,
        on_distraction: Callable[[str], None] | None = None,
        on_break: Callable[[str], None] | None = None,
        on_end_break: Callable[[], None] | None = None,
        on_close: Callable[[], bool] | None = None,
    ) -> None:
        self._app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)
        self._win = _FocusWindow(
            on_create_task,
            on_start,
            on_pause_resume,
            on_stop,
            on_toggle_step,
            on_add_step,
            on_edit_step,
            on_delete_step,
            on_next_steps,
            on_open_tasks,
            on_open_settings,
            on_distraction,
            on_break,
            on_end_break,
            on_close,
        )
        self._tray = QtWidgets.QSystemTrayIcon(self._win.windowIcon(), self._win)

    def schedule_every(self, seconds: int, callback: Callable[[], None]) -> None:
        timer = QtCore.QTimer(self._win)
        timer.setInterval(max(1, int(seconds * 1000)))
        timer.timeout.connect(callback)
        timer.start()
        self._win._timers.append(timer)

    def update_view(self, view: dict) -> None:
        self._win.apply_view(view)

    def ask_choice(self, title: str, text: str, options: list[str]) -> str | None:
        box = QtWidgets.QMessageBox(self._win)
        box.setWindowTitle(title)
        box.setText(text)
        buttons = {box.addButton(option, QtWidgets.QMessageBox.AcceptRole): option for option in options}
        box.addButton(QtWidgets.QMessageBox.Cancel)
        box.exec()
        return buttons.get(box.clickedButton())

    def ask_text(self, title: str, label: str) -> str | None:
        text, ok = QtWidgets.QInputDialog.getText(self._win, title, label)
        return text if ok else None

    def ask_settings(self, current: dict) -> dict | None:
        """Modal form over the editable settings; durations are shown in minutes."""
        dialog = QtWidgets.QDialog(self._win)
        dialog.setWindowTitle("Settings")
        form = QtWidgets.QFormLayout(dialog)

        minutes: dict[str, QtWidgets.QSpinBox] = {}
        for key, label in (
            ("default_session_duration", "Focus (min)"),
            ("break_duration", "Short break (min)"),
            ("long_break_duration", "Long break (min)"),
        ):
            spin = QtWidgets.QSpinBox()
            spin.setRange(1, 180)
            spin.setValue(max(1, int(current.get(key, 60)) // 60))
            form.addRow(label, spin)
            minutes[key] = spin

        flags: dict[str, QtWidgets.QCheckBox] = {}
        for key, label in (
            ("auto_start_breaks", "Start breaks automatically"),
            ("notifications_enabled", "Desktop notifications"),
            ("sound_enabled", "Sound"),
        ):
            box = QtWidgets.QCheckBox(label)
            box.setChecked(bool(current.get(key)))
            form.addRow(box)
            flags[key] = box

        buttons = QtWidgets.QDialogButtonBox(QtWidgets.QDialogButtonBox.Save | QtWidgets.QDialogButtonBox.Cancel)
        buttons.accepted.connect(dialog.accept)
        buttons.rejected.connect(dialog.reject)
        form.addRow(buttons)
        if dialog.exec() != QtWidgets.QDialog.Accepted:
            return None
        changes: dict = {key: spin.value() * 60 for key, spin in minutes.items()}
        changes.update({key: box.isChecked() for key, box in flags.items()})
        return changes

    def notify(self, title: str, body: str) -> None:
        if QtWidgets.QSystemTrayIcon.isSystemTrayAvailable():
            self._tray.show()
            self._tray.showMessage(title, body)
        else:
            self._win.show_message(f"{title}: {body}")

    def run(self) -> None:
        self._win.show()
        self._win.raise_()
        self._win.activateWindow()
        self._app.exec()


class _FocusWindow(QtWidgets.QWidget):
    def __init__(
        self,
        on_create_task: Callable[..., object],
        on_start: Callable[[], None],
        on_pause_resume: Callable[[], None],
        on_stop: Callable[[], None],
        on_toggle_step: Callable[[str], None],
        on_add_step: Callable[[str], None],
        on_edit_step: Callable[[str, str], None] | None,
        on_delete_step: Callable[[str], None] | None,
        on_next_steps: Callable[[], object] | None,
        on_open_tasks: Callable[[], None] | None,
        on_open_settings: Callable[[], None] | None,
        on_distraction: Callable[[str], None] | None,
        on_break: Callable[[str], None] | None,
        on_end_break: Callable[[], None] | None,
        on_close: Callable[[], bool] | None,
    ) -> None:
        super().__init__()
        self._on_create_task = on_create_task
        self._on_start = on_start
        self._on_pause_resume = on_pause_resume
        self._on_stop = on_stop
        self._on_toggle_step = on_toggle_step
        self._on_add_step = on_add_step
        self._on_edit_step = on_edit_step
        self._on_delete_step = on_delete_step
        self._on_distraction = on_distraction
        self._on_break = on_break
        self._on_end_break = on_end_break
        self._on_close = on_close
        self._timers: list[QtCore.QTimer] = []
        self._syncing_steps = False

        self.setWindowTitle("Focus")
        self.setMinimumWidth(360)
        self.setWindowFlags(self.windowFlags() | QtCore.Qt.WindowStaysOnTopHint)

        layout = QtWidgets.QVBoxLayout(self)

        self._title_edit = QtWidgets.QLineEdit()
        self._title_edit.setPlaceholderText("What do you need to do?")
        self._create_btn = QtWidgets.QPushButton("Break it down")
        self._create_btn.clicked.connect(self._emit_create)
        title_row = QtWidgets.QHBoxLayout()
        title_row.addWidget(self._title_edit, 1)
        title_row.addWidget(self._create_btn)
        layout.addLayout(title_row)

        self._task_label = QtWidgets.QLabel("")
        self._task_label.setStyleSheet("font-weight: 600; font-size: 15px;")
        layout.addWidget(self._task_label)

        self._clock = QtWidgets.QLabel(format_clock(0))
        self._clock.setAlignment(QtCore.Qt.AlignCenter)
        self._clock.setStyleSheet("font-size: 42px; font-family: monospace;")
        layout.addWidget(self._clock)

        self._progress = QtWidgets.QProgressBar()
        self._progress.setTextVisible(False)
        layout.addWidget(self._progress)

        buttons = QtWidgets.QHBoxLayout()
        self._start_btn = QtWidgets.QPushButton("Start")
        self._start_btn.clicked.connect(lambda: self._on_start())
        self._pause_btn = QtWidgets.QPushButton("Pause")
        self._pause_btn.clicked.connect(lambda: self._on_pause_resume())
        self._stop_btn = QtWidgets.QPushButton("Stop")
        self._stop_btn.clicked.connect(lambda: self._on_stop())
        self._break_btn = QtWidgets.QPushButton("Break")
        self._break_btn.clicked.connect(self._emit_break)
        for button in (self._start_btn, self._pause_btn, self._stop_btn, self._break_btn):
            buttons.addWidget(button)
        layout.addLayout(buttons)

        extras = QtWidgets.QHBoxLayout()
        for label, callback in (
            ("Tasks", on_open_tasks),
            ("Suggest steps", on_next_steps),
            ("Settings", on_open_settings),
        ):
            if callback is not None:
                button = QtWidgets.QPushButton(label)
                button.clicked.connect(lambda _checked=False, cb=callback: cb())
                extras.addWidget(button)
        layout.addLayout(extras)

        self._steps = QtWidgets.QListWidget()
        self._steps.itemChanged.connect(self._emit_toggle)
        self._steps.setContextMenuPolicy(QtCore.Qt.CustomContextMenu)
        self._steps.customContextMenuRequested.connect(self._open_step_menu)
        layout.addWidget(self._steps, 1)

        self._hints = QtWidgets.QLabel("")
        self._hints.setWordWrap(True)
        self._hints.setStyleSheet("color: #777;")
        layout.addWidget(self._hints)

        self._step_edit = QtWidgets.QLineEdit()
        self._step_edit.setPlaceholderText("Add a step")
        self._step_edit.returnPressed.connect(self._emit_add_step)
        layout.addWidget(self._step_edit)

        self._distraction_edit = QtWidgets.QLineEdit()
        self._distraction_edit.setPlaceholderText("Park a distraction for later")
        self._distraction_edit.returnPressed.connect(self._emit_distraction)
        layout.addWidget(self._distraction_edit)

        self._status = QtWidgets.QLabel("")
        self._status.setWordWrap(True)
        layout.addWidget(self._status)

        QtGui.QShortcut(QtGui.QKeySequence("Space"), self, activated=lambda: self._on_pause_resume())

    def apply_view(self, view: dict) -> None:
        phase = str(view.get("phase", ""))
        in_break = phase == "BREAK"
        if in_break:
            remaining = int(view.get("break_remaining_s", 0))
            total = int(view.get("break_total_s", 0)) or 1
            self._task_label.setText(f"{str(view.get('break_type', 'short')).capitalize()} break")
        else:
            remaining = int(view.get("remaining_s", 0))
            total = int(view.get("total_s", 0)) or 1
            self._task_label.setText(str(view.get("task_title", "")))
        self._clock.setText(format_clock(remaining))
        self._progress.setMaximum(total)
        self._progress.setValue(total - remaining)

        session_active = bool(view.get("session_id"))
        paused = bool(view.get("paused")) if not in_break else not bool(view.get("break_running"))
        self._start_btn.setEnabled(not session_active)
        self._pause_btn.setText("Resume" if paused else "Pause")
        self._pause_btn.setEnabled(session_active or in_break)
        self._stop_btn.setEnabled(session_active)
        self._break_btn.setText("End break" if in_break else "Break")
        self._distraction_edit.setEnabled(session_active)

        self._set_steps(view.get("steps") or [])
        hints = view.get("hints") or []
        self._hints.setText("Ideas: " + "; ".join(hints) if hints else "")
        streak = int(view.get("streak", 0))
        message = str(view.get("message", "") or "")
        self._status.setText(f"Streak: {streak} day(s)" + (f"  |  {message}" if message else ""))

    def _set_steps(self, steps: list[dict]) -> None:
        self._syncing_steps = True
        try:
            self._steps.clear()
            for step in steps:
                item = QtWidgets.QListWidgetItem(str(step.get("content", "")))
                item.setFlags(item.flags() | QtCore.Qt.ItemIsUserCheckable)
                item.setCheckState(QtCore.Qt.Checked if step.get("done") else QtCore.Qt.Unchecked)
                item.setData(QtCore.Qt.UserRole, str(step.get("id", "")))
                self._steps.addItem(item)
        finally:
            self._syncing_steps = False

    def show_message(self, text: str) -> None:
        self._status.setText(text)

    def _emit_create(self) -> None:
        title = self._title_edit.text()
        self._title_edit.clear()
        self._on_create_task(title)

    def _emit_toggle(self, item: QtWidgets.QListWidgetItem) -> None:
        if self._syncing_steps:
            return
        self._on_toggle_step(str(item.data(QtCore.Qt.UserRole)))

    def _emit_add_step(self) -> None:
        text = self._step_edit.text()
        self._step_edit.clear()
        self._on_add_step(text)

    def _emit_distraction(self) -> None:
        text = self._distraction_edit.text()
        self._distraction_edit.clear()
        if self._on_distraction is not None:
            self._on_distraction(text)

    def _emit_break(self) -> None:
        if self._break_btn.text() == "End break":
            if self._on_end_break is not None:
                self._on_end_break()
            return
        if self._on_break is not None:
            self._on_break("short")

    def _open_step_menu(self, pos: QtCore.QPoint) -> None:
        item = self._steps.itemAt(pos)
        if item is None:
            return
        step_id = str(item.data(QtCore.Qt.UserRole))
        menu = QtWidgets.QMenu(self)
        edit_action = menu.addAction("Edit step") if self._on_edit_step is not None else None
        delete_action = menu.addAction("Delete step") if self._on_delete_step is not None else None
        if menu.isEmpty():
            return
        chosen = menu.exec(self._steps.mapToGlobal(pos))
        if chosen is None:
            return
        if chosen == edit_action:
            text, ok = QtWidgets.QInputDialog.getText(
                self, "Edit step", "Step:", QtWidgets.QLineEdit.Normal, item.text()
            )
            if ok:
                self._on_edit_step(step_id, text)
        elif chosen == delete_action:
            self._on_delete_step(step_id)

    def closeEvent(self, e: QtGui.QCloseEvent) -> None:
        confirm = self._on_close() if self._on_close is not None else False
        if confirm:
            answer = QtWidgets.QMessageBox.question(
                self,
                "Leave focus session?",
                "A focus session is running. Close anyway?",
            )
            if answer != QtWidgets.QMessageBox.Yes:
                e.ignore()
                return
        e.accept()
