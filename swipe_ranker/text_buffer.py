"""Typed text and word history owned by the input method."""

from __future__ import annotations

from typing import Callable, List, Optional

from .config import LM_CONTEXT_WORDS


class TextInputBuffer:
    """
    Current text plus the list of completed words.

    ``on_change`` is called with the full text after every mutation.
    """

    def __init__(self, on_change: Optional[Callable[[str], None]] = None):
        self.text = ""
        self.word_history: List[str] = []
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.text)

    def append_character(self, ch: str) -> None:
        self.text += ch
        if ch == " ":
            # a space completes the word before it
            last_word = self.text.rstrip(" ").rsplit(" ", 1)[-1]
            if last_word:
                self.word_history.append(last_word)
        self._changed()

    def append_text(self, text: str) -> None:
        self.text += text
        if " " in text:
            self.word_history.extend(w for w in text.split(" ") if w)
        self._changed()

    def delete_last_character(self) -> None:
        if not self.text:
            return
        self.text = self.text[:-1]
        self._changed()

    def delete_last_word(self) -> None:
        idx = self.text.rfind(" ")
        self.text = self.text[: idx + 1] if idx != -1 else ""
        if self.word_history:
            self.word_history.pop()
        self._changed()

    def clear(self) -> None:
        self.text = ""
        self.word_history.clear()
        self._changed()

    def context_words(self, limit: int = LM_CONTEXT_WORDS) -> List[str]:
        """
        Last ``limit`` words of the current text, oldest first.

        Read from ``text`` rather than ``word_history`` so a word still being
        typed, or a completed word edited with backspace, is seen as it is now.
        ``word_history`` is kept for callers and is not used here.
        """
        words = [w for w in self.text.split(" ") if w]
        return words[-limit:] if limit > 0 else []
