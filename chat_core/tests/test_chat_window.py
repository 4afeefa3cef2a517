import pytest

pytest.importorskip("tkinter")

from chat_core.gui import chat_window
from chat_core.gui.chat_window import App


class EntryStub:
    def __init__(self, text):
        self.text = text
        self.state = None

    def get(self):
        return self.text

    def delete(self, start, end):
        self.text = ""

    def insert(self, index, text):
        self.text = text

    def config(self, **kw):
        self.state = kw.get("state", self.state)

    def focus_set(self):
        pass


class WidgetStub:
    def __init__(self):
        self.options = {}

    def config(self, **kw):
        self.options.update(kw)


class RootStub:
    def __init__(self):
        self.callbacks = []

    def after(self, delay, fn):
        self.callbacks.append(fn)


class SessionStub:
    is_submitting = False

    def __init__(self):
        self.submitted = []

    def submit(self, text=None):
        self.submitted.append(text)


class ThreadStub:
    started = []

    def __init__(self, target=None, args=(), daemon=None):
        self.target = target
        self.args = args

    def start(self):
        ThreadStub.started.append(self)


def _app(monkeypatch, text):
    ThreadStub.started = []
    monkeypatch.setattr(chat_window.threading, "Thread", ThreadStub)
    app = App.__new__(App)
    app.root = RootStub()
    app.session = SessionStub()
    app.sending = False
    app.entry = EntryStub(text)
    app.send_btn = WidgetStub()
    app.status = WidgetStub()
    return app


def test_second_send_before_worker_starts_is_ignored(monkeypatch):
    app = _app(monkeypatch, "first")
    app.on_send()
    # 工作线程还没跑起来，控制器的 is_submitting 仍为 False
    app.entry.insert(0, "second")
    app.on_send()
    assert len(ThreadStub.started) == 1
    assert ThreadStub.started[0].args == ("first",)
    assert app.entry.text == "second"
    assert app.entry.state == chat_window.tk.DISABLED
    assert app.status.options["text"] == "Thinking..."


def test_worker_submits_captured_text_and_reenables_input(monkeypatch):
    app = _app(monkeypatch, "first")
    app.on_send()
    worker = ThreadStub.started[0]
    worker.target(*worker.args)
    assert app.session.submitted == ["first"]
    for callback in app.root.callbacks:
        callback()
    assert app.sending is False
    assert app.entry.state == chat_window.tk.NORMAL
    assert app.status.options["text"] == "Ready"


def test_blank_entry_does_not_start_worker(monkeypatch):
    app = _app(monkeypatch, "   ")
    app.on_send()
    assert ThreadStub.started == []
    assert app.sending is False
