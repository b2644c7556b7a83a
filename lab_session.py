"""
---
version: 0.2.0
created: 2026-10-14
updated: 2026-10-19
---

lab_session.py — One analysis session per ciphertext under study.

An AnalysisSession holds the raw text, the configuration, the pinned key
length and the key state. Every query recomputes from those fields; there is
no caching and no shared state between sessions.

Usage:
    session = AnalysisSession(ciphertext)
    session.ioc_sweep()
    session.pin_key_length(5)
    session.commit_best_shift(column=0)
    print(session.decode_preview())
"""

from __future__ import annotations

import warnings
from collections import Counter
from dataclasses import dataclass, field, replace

from vigenere_lab import (
    DEFAULT_FACTOR_LIMIT, DEFAULT_MAX_K, DEFAULT_NGRAM,
    MAX_KEY_LENGTH, MAX_NGRAM, MIN_KEY_LENGTH, MIN_NGRAM,
    KeyState, clamp, normalize, text_stats,
    split_columns, ioc_sweep, find_repeats, repeat_table,
    kasiski_votes, kasiski_candidates, rank_candidates,
    resolve_key_length, chi_profile, best_shift,
    decode_partial, highlight_occurrences,
)


def _clamped(name: str, value: int, low: int, high: int) -> int:
    """Clamp a setting into range, warning when it had to move."""
    result = clamp(value, low, high)
    if result != value:
        warnings.warn(f"{name}={value} outside {low}..{high}; using {result}")
    return result


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Knobs for the evidence views.

    ngram: repeat length for Kasiski (3..6)
    pairwise: all occurrence pairs (True) or successive gaps only (False)
    max_k: largest key length charted by the IoC sweep and vote table
    factor_limit: largest factor that receives Kasiski votes
    """

    ngram: int = DEFAULT_NGRAM
    pairwise: bool = True
    max_k: int = DEFAULT_MAX_K
    factor_limit: int = DEFAULT_FACTOR_LIMIT

    def clamped(self) -> AnalysisConfig:
        return AnalysisConfig(
            ngram=_clamped("ngram", self.ngram, MIN_NGRAM, MAX_NGRAM),
            pairwise=bool(self.pairwise),
            max_k=_clamped("max_k", self.max_k, MIN_KEY_LENGTH, MAX_KEY_LENGTH),
            factor_limit=_clamped("factor_limit", self.factor_limit,
                                  MIN_KEY_LENGTH, MAX_KEY_LENGTH),
        )


@dataclass
class AnalysisSession:
    """Evidence views and key composer for one ciphertext."""

    raw: str = ""
    config: AnalysisConfig = field(default_factory=AnalysisConfig)
    pinned_k: int | None = None
    selected_gram: str = ""
    active_column: int = 0
    key: KeyState = field(default_factory=KeyState)

    def __post_init__(self) -> None:
        self.config = self.config.clamped()
        if self.pinned_k is not None:
            self.pinned_k = _clamped("key length", self.pinned_k,
                                     MIN_KEY_LENGTH, MAX_KEY_LENGTH)
        self._sync_key()

    # ------------------------------------------------------------------
    # Setters
    # ------------------------------------------------------------------

    def set_text(self, raw: str) -> int:
        """Replace the ciphertext. Returns the new working key length."""
        self.raw = raw or ""
        self._sync_key()
        return self.working_key_length

    def configure(self, **changes) -> AnalysisConfig:
        """Update config fields (ngram, pairwise, max_k, factor_limit)."""
        self.config = replace(self.config, **changes).clamped()
        self._sync_key()
        return self.config

    def pin_key_length(self, k: int) -> int:
        self.pinned_k = _clamped("key length", k, MIN_KEY_LENGTH, MAX_KEY_LENGTH)
        self._sync_key()
        return self.pinned_k

    def unpin_key_length(self) -> int:
        """Drop the pin and fall back to Kasiski/IoC evidence."""
        self.pinned_k = None
        self._sync_key()
        return self.working_key_length

    def select_gram(self, gram: str) -> None:
        self.selected_gram = normalize(gram)

    def select_column(self, index: int) -> int:
        self.active_column = self._column(index)
        return self.active_column

    def set_shift(self, value: int, column: int | None = None) -> dict:
        self.key.set_shift(self._column(column), value)
        return self.key_view()

    def clear_shift(self, column: int | None = None) -> dict:
        self.key.clear(self._column(column))
        return self.key_view()

    def commit_best_shift(self, column: int | None = None) -> dict:
        """Commit the lowest-chi-square shift for a column into the key."""
        col = self._column(column)
        self.key.set_shift(col, best_shift(self.columns()[col]))
        return self.key_view()

    def apply_key(self, letters: str) -> dict:
        """Fill the key from a key word; ignored when it has no letters."""
        self._sync_key()
        self.key.apply_key_string(letters)
        return self.key_view()

    def reset_key(self) -> dict:
        self._sync_key()
        self.key.reset()
        return self.key_view()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def stream(self) -> str:
        return normalize(self.raw)

    def repeats(self) -> list[dict]:
        return find_repeats(self.stream, self.config.ngram)

    def repeat_table(self) -> list[dict]:
        return repeat_table(self.repeats(), successive_only=not self.config.pairwise)

    def kasiski_votes(self) -> Counter:
        return kasiski_votes(self.repeats(), successive_only=not self.config.pairwise,
                             limit=self.config.factor_limit)

    def kasiski_candidates(self) -> list[dict]:
        return kasiski_candidates(self.kasiski_votes(), self.config.max_k)

    def ioc_sweep(self) -> list[dict]:
        return ioc_sweep(self.stream, self.config.max_k)

    @property
    def working_key_length(self) -> int:
        if self.pinned_k is not None:
            return self.pinned_k
        return resolve_key_length(self.kasiski_candidates(), self.ioc_sweep())

    def columns(self) -> list[str]:
        return split_columns(self.stream, self._sync_key())

    def active_column_text(self) -> str:
        return self.columns()[self.active_column]

    def chi_profile(self, column: int | None = None) -> list[dict]:
        col = self._column(column)
        return chi_profile(self.columns()[col])

    def best_shift(self, column: int | None = None) -> int:
        col = self._column(column)
        return best_shift(self.columns()[col])

    def key_string(self) -> str:
        self._sync_key()
        return self.key.key_string()

    def decode_preview(self) -> str:
        k = self._sync_key()
        return decode_partial(self.raw, self.key, k)

    def highlighted_stream(self) -> str:
        return highlight_occurrences(self.stream, self.selected_gram)

    def key_view(self) -> dict:
        k = self._sync_key()
        return {"k": k, "key": self.key.key_string(),
                "preview": decode_partial(self.raw, self.key, k)}

    def report(self) -> dict:
        """Every evidence view in one dict (JSON-serializable)."""
        stream = self.stream
        repeats = find_repeats(stream, self.config.ngram)
        successive = not self.config.pairwise
        votes = kasiski_candidates(
            kasiski_votes(repeats, successive_only=successive,
                          limit=self.config.factor_limit),
            self.config.max_k)
        sweep = ioc_sweep(stream, self.config.max_k)
        k = self._sync_key(resolve_key_length(votes, sweep, self.pinned_k))
        column = split_columns(stream, k)[self.active_column]
        return {
            "text": text_stats(self.raw),
            "config": {
                "ngram": self.config.ngram,
                "pairwise": self.config.pairwise,
                "max_k": self.config.max_k,
                "factor_limit": self.config.factor_limit,
            },
            "repeats": repeat_table(repeats, successive_only=successive),
            "kasiski": votes,
            "kasiski_ranked": rank_candidates(votes, "votes"),
            "ioc": sweep,
            "ioc_ranked": rank_candidates(sweep, "ioc"),
            "pinned_k": self.pinned_k,
            "working_k": k,
            "active_column": self.active_column,
            "column": column,
            "chi": chi_profile(column),
            "best_shift": best_shift(column),
            "key": self.key.key_string(),
            "preview": decode_partial(self.raw, self.key, k),
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sync_key(self, k: int | None = None) -> int:
        """
        Resize the key to the working length and keep the active column in
        range. The column resets to 0 when the length changes.
        """
        if k is None:
            k = self.working_key_length
        if len(self.key) != k:
            self.key.resize(k)
            self.active_column = 0
        self.active_column = clamp(self.active_column, 0, k - 1)
        return k

    def _column(self, column: int | None) -> int:
        k = self._sync_key()
        if column is None:
            return self.active_column
        return clamp(column, 0, k - 1)
