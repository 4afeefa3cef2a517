import threading
import tkinter as tk
from tkinter import scrolledtext

from chat_core.api.service import get_default_session
from chat_core.gui.formatting import format_usage, message_header
from chat_core.session.controller import SessionController


EMPTY_HINT = "No messages yet. Start a conversation!"


class App:
    def __init__(self, root, session: SessionController):
        self.root = root
        self.root.title("Chat Assistant")
        self.session = session
        # 主线程侧的发送标记，工作线程拿到锁之前就生效
        self.sending = False
        self.session.subscribe(self.on_session_event)

        top = tk.Frame(root)
        top.pack(fill=tk.X)
        tk.Label(top, text="Chat Assistant").pack(side=tk.LEFT)
        self.clear_btn = tk.Button(top, text="Clear history", command=self.on_clear)

        self.chat = scrolledtext.ScrolledText(root, width=90, height=28, wrap=tk.WORD)
        self.chat.pack(fill=tk.BOTH, expand=True)
        self.chat.tag_config("user", foreground="#1a73e8")
        self.chat.tag_config("bot", foreground="#34a853")
        self.chat.tag_config("error", foreground="#d93025")
        self.chat.tag_config("meta", foreground="#5f6368")

        bottom = tk.Frame(root)
        bottom.pack(fill=tk.X)
        self.entry = tk.Entry(bottom)
        self.entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
        self.entry.bind("<Return>", self.on_send_event)
        self.entry.bind("<Control-Return>", self.on_send_event)
        self.entry.bind("<Escape>", self.on_escape)
        self.send_btn = tk.Button(bottom, text="Send", command=self.on_send)
        self.send_btn.pack(side=tk.LEFT)
        self.status = tk.Label(root, text="Ready", anchor=tk.W)
        self.status.pack(fill=tk.X)

        self.render()
        self.entry.focus_set()

    def render(self):
        messages = self.session.messages
        self.chat.config(state=tk.NORMAL)
        self.chat.delete(1.0, tk.END)
        if not messages:
            self.chat.insert(tk.END, EMPTY_HINT + "\n", "meta")
            self.clear_btn.pack_forget()
        else:
            self.clear_btn.pack(side=tk.RIGHT)
        for m in messages:
            tag = "user" if m.sender == "user" else ("error" if m.is_error else "bot")
            self.chat.insert(tk.END, message_header(m) + "\n", "meta")
            self.chat.insert(tk.END, m.content + "\n", tag)
            usage = format_usage(m.usage)
            if usage:
                self.chat.insert(tk.END, usage + "\n", "meta")
            self.chat.insert(tk.END, "\n")
        self.chat.config(state=tk.DISABLED)
        self.chat.see(tk.END)

    def render_state(self):
        busy = self.sending or self.session.is_submitting
        self.entry.config(state=tk.DISABLED if busy else tk.NORMAL)
        self.send_btn.config(state=tk.DISABLED if busy else tk.NORMAL)
        self.status.config(text="Thinking..." if busy else "Ready")
        if not busy:
            self.entry.focus_set()

    def on_session_event(self, event, session):
        # 回调可能来自工作线程，统一切回 Tk 主线程
        if event == "messages":
            self.root.after(0, self.render)
        else:
            self.root.after(0, self.render_state)

    def on_send(self):
        if self.sending or self.session.is_submitting:
            return
        text = self.entry.get()
        if not text.strip():
            return
        self.sending = True
        self.entry.delete(0, tk.END)
        self.render_state()
        threading.Thread(target=self.submit_in_background, args=(text,), daemon=True).start()

    def submit_in_background(self, text):
        try:
            self.session.submit(text)
        finally:
            self.root.after(0, self.on_submit_done)

    def on_submit_done(self):
        self.sending = False
        self.render_state()

    def on_send_event(self, event):
        self.on_send()
        return "break"

    def on_escape(self, event):
        self.entry.delete(0, tk.END)
        self.session.clear_input()
        return "break"

    def on_clear(self):
        self.session.clear()


def main():
    root = tk.Tk()
    App(root, get_default_session())
    root.mainloop()


if __name__ == "__main__":
    main()
