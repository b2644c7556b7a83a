"""
---
version: 0.3.0
created: 2026-10-12
updated: 2026-10-19
---

vigenere_lab.py — Shared module for Vigenère-family key evidence.

Nothing in here solves a cipher. Every function returns evidence (tables,
curves, scores) that a person reads before committing a key length or a
column shift.

Eight sections:
  1. Data constants (English letter frequencies, reference IoC, defaults)
  2. Normalizer + column splitter
  3. Index of coincidence (single stream, key-length sweep)
  4. Kasiski examination (repeats, distances, factor votes)
  5. Chi-square column scoring
  6. Key state + working key length
  7. Codec (partial decode, encode for known-key tests)
  8. Output utils (plain-text tables for the explorer script)
"""

from __future__ import annotations

import string
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np
from scipy import stats as sp_stats

# ============================================================================
# 1. DATA CONSTANTS
# ============================================================================

ALPHABET = string.ascii_uppercase
LETTERS = frozenset(string.ascii_letters)

# English letter frequencies, A..Z.
ENGLISH_FREQ: np.ndarray = np.array([
    0.08167, 0.01492, 0.02782, 0.04253, 0.12702, 0.02228, 0.02015, 0.06094,
    0.06966, 0.00153, 0.00772, 0.04025, 0.02406, 0.06749, 0.07507, 0.01929,
    0.00095, 0.05987, 0.06327, 0.09056, 0.02758, 0.00978, 0.02360, 0.00150,
    0.01974, 0.00074,
])

ENGLISH_IOC: float = 0.066
RANDOM_IOC: float = 0.038

# Returned for an empty column so it never wins a minimization.
CHI_SENTINEL: float = 1e9

# Placeholders: unknown key slot in the key string, unknown plaintext letter.
UNKNOWN_KEY = "?"
UNKNOWN_PLAIN = "·"

MIN_KEY_LENGTH = 1
MAX_KEY_LENGTH = 40
MIN_NGRAM = 3
MAX_NGRAM = 6

DEFAULT_NGRAM = 3
DEFAULT_MAX_K = 30
DEFAULT_FACTOR_LIMIT = 30

IOC_DECIMALS = 5
CHI_DECIMALS = 3


def clamp(value: int, low: int, high: int) -> int:
    """Clamp an integer into [low, high]."""
    return max(low, min(high, int(value)))


# ============================================================================
# 2. NORMALIZER + COLUMN SPLITTER
# ============================================================================

def normalize(raw: str) -> str:
    """Uppercase the text and drop everything outside A-Z."""
    return "".join(c.upper() for c in (raw or "") if c in LETTERS)


def text_stats(raw: str) -> dict:
    """Raw vs analyzed length, as shown next to the ciphertext input."""
    return {
        "raw_length": len(raw or ""),
        "analyzed_length": len(normalize(raw)),
    }


def split_columns(stream: str, k: int) -> list[str]:
    """
    Split a canonical stream into k columns.

    Column i holds every character at a position congruent to i mod k, in
    original order. k below 1 is treated as 1.
    """
    k = max(MIN_KEY_LENGTH, int(k))
    return [stream[i::k] for i in range(k)]


def merge_columns(columns: Sequence[str]) -> str:
    """Round-robin reassembly of split_columns() output."""
    k = len(columns)
    total = sum(len(col) for col in columns)
    return "".join(columns[j % k][j // k] for j in range(total))


def _letter_codes(text: str) -> np.ndarray:
    """A-Z string to an int array of 0..25."""
    return np.frombuffer(text.encode("ascii"), dtype=np.uint8).astype(np.int64) - 65


def letter_counts(text: str) -> np.ndarray:
    """26-bin histogram of the A-Z letters in text (case-folded)."""
    text = normalize(text)
    if not text:
        return np.zeros(26, dtype=np.int64)
    return np.bincount(_letter_codes(text), minlength=26)


# ============================================================================
# 3. INDEX OF COINCIDENCE
# ============================================================================

def index_of_coincidence(stream: str) -> float:
    """
    Compute the index of coincidence over the A-Z letters of a text.

    English: ~0.066. Random (uniform 26): ~0.038. Streams shorter than two
    letters return 0.0.
    """
    counts = letter_counts(stream)
    n = int(counts.sum())
    if n < 2:
        return 0.0
    return float(np.sum(counts * (counts - 1)) / (n * (n - 1)))


def ioc_sweep(stream: str, max_k: int) -> list[dict]:
    """
    Mean per-column IoC for every candidate key length 1..max_k.

    Correctly split columns are individually monoalphabetic, so the curve
    should peak near the true key length (and its multiples).

    Returns:
        List of {"k", "ioc"} dicts, k ascending, ioc rounded to 5 places.
    """
    samples: list[dict] = []
    for k in range(MIN_KEY_LENGTH, int(max_k) + 1):
        cols = split_columns(stream, k)
        mean = sum(index_of_coincidence(col) for col in cols) / k
        samples.append({"k": k, "ioc": round(mean, IOC_DECIMALS)})
    return samples


# ============================================================================
# 4. KASISKI EXAMINATION
# ============================================================================

def find_repeats(stream: str, n: int) -> list[dict]:
    """
    Find every n-gram that occurs at least twice.

    Args:
        stream: Canonical A-Z stream.
        n: Gram length (the explorer restricts this to 3..6).

    Returns:
        List of {"gram", "positions"} dicts sorted by occurrence count,
        highest first. Equal counts keep first-seen order.
    """
    if n < 1:
        return []
    index: dict[str, list[int]] = {}
    for i in range(len(stream) - n + 1):
        index.setdefault(stream[i:i + n], []).append(i)
    repeats = [
        {"gram": gram, "positions": positions}
        for gram, positions in index.items()
        if len(positions) >= 2
    ]
    repeats.sort(key=lambda r: -len(r["positions"]))
    return repeats


def distances(positions: Sequence[int], successive_only: bool = False) -> list[int]:
    """
    Distances between occurrences of one gram.

    Successive mode emits consecutive gaps only. Pairwise mode emits every
    positions[j] - positions[i] for i < j, which is O(m^2) in the number of
    occurrences m.
    """
    if successive_only:
        return [positions[i + 1] - positions[i] for i in range(len(positions) - 1)]
    return [
        positions[j] - positions[i]
        for i in range(len(positions))
        for j in range(i + 1, len(positions))
    ]


def factor_votes(dists: Iterable[int], limit: int) -> Counter:
    """
    One vote per (distance, factor) pair for factors 2..min(limit, d).

    Unweighted: a gram with more occurrences yields more distances and so
    contributes more votes.
    """
    votes: Counter = Counter()
    for d in dists:
        votes.update(f for f in range(2, min(int(limit), d) + 1) if d % f == 0)
    return votes


def kasiski_votes(
    repeats: Sequence[dict],
    successive_only: bool = False,
    limit: int = DEFAULT_FACTOR_LIMIT,
) -> Counter:
    """Sum factor votes across every repeated gram."""
    totals: Counter = Counter()
    for r in repeats:
        totals.update(factor_votes(distances(r["positions"], successive_only), limit))
    return totals


def kasiski_candidates(votes: dict[int, int], max_k: int) -> list[dict]:
    """Vote table filtered to k <= max_k, as {"k", "votes"} rows sorted by k."""
    return [{"k": k, "votes": votes[k]} for k in sorted(votes) if k <= max_k]


def rank_candidates(candidates: Sequence[dict], value_key: str) -> list[dict]:
    """Sort candidate rows by value descending, smallest k first on ties."""
    return sorted(candidates, key=lambda row: (-row[value_key], row["k"]))


def repeat_table(repeats: Sequence[dict], successive_only: bool = False) -> list[dict]:
    """Repeats with their distance lists attached, for display."""
    return [
        {
            "gram": r["gram"],
            "positions": list(r["positions"]),
            "distances": distances(r["positions"], successive_only),
        }
        for r in repeats
    ]


def highlight_occurrences(stream: str, gram: str, marks: tuple[str, str] = ("[", "]")) -> str:
    """
    Wrap non-overlapping occurrences of gram in marks, scanning left to right.

    Purely a read-side view of the stream; no analysis depends on it.
    """
    if not gram:
        return stream
    n = len(gram)
    out: list[str] = []
    i = 0
    while i < len(stream):
        if stream[i:i + n] == gram:
            out.append(f"{marks[0]}{gram}{marks[1]}")
            i += n
        else:
            out.append(stream[i])
            i += 1
    return "".join(out)


# ============================================================================
# 5. CHI-SQUARE COLUMN SCORING
# ============================================================================

def shift_to_letter(shift: int) -> str:
    return ALPHABET[int(shift) % 26]


def letter_to_shift(letter: str) -> int:
    return (ord(letter.upper()) - 65) % 26


def chi_for_shift(column: str, shift: int) -> float:
    """
    Chi-square fit of a column to English after undoing a Caesar shift.

    Lower = closer to English. Expected counts are floored at 1 in the
    denominator. An empty column returns CHI_SENTINEL.
    """
    observed = letter_counts(column)
    n = int(observed.sum())
    if n == 0:
        return CHI_SENTINEL
    # Undone letter i came from ciphertext letter (i + shift) mod 26.
    observed = np.roll(observed, -(int(shift) % 26))
    expected = ENGLISH_FREQ * n
    return float(np.sum((observed - expected) ** 2 / np.maximum(expected, 1.0)))


def chi_profile(column: str) -> list[dict]:
    """
    Chi-square for all 26 shifts.

    Returns:
        26 dicts with:
            shift: 0..25
            letter: key letter for that shift
            chi: statistic rounded to 3 places
            p_value: upper tail of chi2(25) at the unrounded statistic
    """
    profile: list[dict] = []
    for shift in range(26):
        chi = chi_for_shift(column, shift)
        profile.append({
            "shift": shift,
            "letter": shift_to_letter(shift),
            "chi": round(chi, CHI_DECIMALS),
            "p_value": float(sp_stats.chi2.sf(chi, df=25)),
        })
    return profile


def best_shift(column: str) -> int:
    """Shift with the lowest chi-square; smallest shift wins ties."""
    scores = np.array([chi_for_shift(column, s) for s in range(26)])
    return int(np.argmin(scores))


# ============================================================================
# 6. KEY STATE + WORKING KEY LENGTH
# ============================================================================

@dataclass(frozen=True)
class Determined:
    """A key slot with a known shift (0..25)."""

    shift: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "shift", int(self.shift) % 26)

    @property
    def letter(self) -> str:
        return shift_to_letter(self.shift)


class Undetermined:
    """A key slot nobody has committed yet. Use the UNDETERMINED singleton."""

    _instance: Undetermined | None = None

    def __new__(cls) -> Undetermined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDETERMINED"


UNDETERMINED = Undetermined()

Slot = Determined | Undetermined


class KeyState:
    """
    Per-column shifts for the working key length.

    Slots survive key-length changes: shrinking truncates, growing pads with
    UNDETERMINED.
    """

    def __init__(self, length: int = 0) -> None:
        self._slots: list[Slot] = [UNDETERMINED] * max(0, int(length))

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)

    def __getitem__(self, index: int) -> Slot:
        return self._slots[index]

    def __repr__(self) -> str:
        return f"KeyState({self.key_string()!r})"

    @property
    def slots(self) -> tuple[Slot, ...]:
        return tuple(self._slots)

    def resize(self, length: int) -> None:
        length = max(0, int(length))
        if length < len(self._slots):
            del self._slots[length:]
        else:
            self._slots.extend([UNDETERMINED] * (length - len(self._slots)))

    def set_shift(self, index: int, value: int) -> None:
        """Commit a shift for one slot. Values wrap modulo 26."""
        self._slots[index] = Determined(value)

    def clear(self, index: int) -> None:
        self._slots[index] = UNDETERMINED

    def apply_key_string(self, letters: str) -> bool:
        """
        Fill every slot from a key word, cycling it when shorter than the key.

        Non-letters are ignored. Returns False (and changes nothing) when no
        letters remain.
        """
        clean = normalize(letters)
        if not clean:
            return False
        self._slots = [
            Determined(letter_to_shift(clean[i % len(clean)]))
            for i in range(len(self._slots))
        ]
        return True

    def reset(self) -> None:
        self._slots = [UNDETERMINED] * len(self._slots)

    def key_string(self, placeholder: str = UNKNOWN_KEY) -> str:
        return "".join(
            s.letter if isinstance(s, Determined) else placeholder
            for s in self._slots
        )


def resolve_key_length(
    candidates: Sequence[dict],
    ioc_samples: Sequence[dict],
    pinned: int | None = None,
) -> int:
    """
    Pick the working key length.

    Order: an explicit pin (clamped to 1..40), then the Kasiski candidate
    with the most votes, then the IoC sample with the highest mean, then 1.
    Ties go to the smallest k.

    Args:
        candidates: kasiski_candidates() rows, already filtered to max_k.
        ioc_samples: ioc_sweep() rows.
        pinned: User-chosen key length, or None.
    """
    if pinned is not None:
        return clamp(pinned, MIN_KEY_LENGTH, MAX_KEY_LENGTH)
    if candidates:
        return rank_candidates(candidates, "votes")[0]["k"]
    if ioc_samples:
        return rank_candidates(ioc_samples, "ioc")[0]["k"]
    return MIN_KEY_LENGTH


# ============================================================================
# 7. CODEC — Partial decode, known-key encode
# ============================================================================

def decode_partial(raw: str, key: KeyState | Sequence[Slot], k: int) -> str:
    """
    Decode raw text with whatever shifts are known.

    Non-letters pass through unchanged. The j-th letter uses slot j mod k;
    an undetermined (or missing) slot yields UNKNOWN_PLAIN. Decoded letters
    come out uppercase.

    Args:
        raw: Original ciphertext, any characters.
        key: KeyState or a sequence of slots.
        k: Working key length. Non-positive k returns raw unchanged.
    """
    if not raw or k <= 0:
        return raw
    slots = list(key)
    out: list[str] = []
    j = 0
    for ch in raw:
        if ch not in LETTERS:
            out.append(ch)
            continue
        upper = ch.upper()
        col = j % k
        slot = slots[col] if col < len(slots) else UNDETERMINED
        if isinstance(slot, Determined):
            out.append(ALPHABET[(ord(upper) - 65 - slot.shift + 26) % 26])
        else:
            out.append(UNKNOWN_PLAIN)
        j += 1
    return "".join(out)


def encode_vigenere(raw: str, shifts: Sequence[int]) -> str:
    """
    Encrypt with per-column shifts, keeping non-letters in place.

    Letters are uppercased; the j-th letter is shifted by shifts[j mod len].

    Raises:
        ValueError: If shifts is empty.
    """
    if not shifts:
        raise ValueError("Need at least one shift to encode")
    k = len(shifts)
    out: list[str] = []
    j = 0
    for ch in raw:
        if ch in LETTERS:
            out.append(ALPHABET[(ord(ch.upper()) - 65 + shifts[j % k]) % 26])
            j += 1
        else:
            out.append(ch)
    return "".join(out)


def generate_english_freq_text(length: int, rng: np.random.Generator) -> str:
    """Generate random A-Z text with English letter frequencies."""
    probs = ENGLISH_FREQ / ENGLISH_FREQ.sum()
    return "".join(rng.choice(list(ALPHABET), size=length, p=probs))


# ============================================================================
# 8. OUTPUT UTILS — Plain-text tables
# ============================================================================

def format_repeat_table(rows: Sequence[dict], limit: int = 20) -> str:
    """Format repeat_table() rows."""
    if not rows:
        return "  No repeats found yet. Try a longer text or lower n."
    lines = [f"  {'n-gram':<8} {'positions':<30} distances", "  " + "-" * 60]
    for r in rows[:limit]:
        pos = ", ".join(str(p) for p in r["positions"])
        dist = ", ".join(str(d) for d in r["distances"])
        lines.append(f"  {r['gram']:<8} {pos:<30} {dist}")
    if len(rows) > limit:
        lines.append(f"  ... {len(rows) - limit} more")
    return "\n".join(lines)


def format_bar_series(
    rows: Sequence[dict],
    value_key: str,
    width: int = 40,
    marker: int | None = None,
) -> str:
    """
    Horizontal text bars, one per k.

    marker flags one k (the working key length) with an arrow.
    """
    if not rows:
        return "  (no evidence yet)"
    top = max(row[value_key] for row in rows) or 1
    lines: list[str] = []
    for row in rows:
        value = row[value_key]
        bar = "#" * int(round(width * value / top))
        flag = " <--" if marker is not None and row["k"] == marker else ""
        shown = f"{value:.5f}" if isinstance(value, float) else f"{value}"
        lines.append(f"  k={row['k']:>2} {shown:>9} {bar}{flag}")
    return "\n".join(lines)


def format_chi_profile(profile: Sequence[dict], best: int | None = None) -> str:
    """Format chi_profile() rows, flagging the best shift."""
    lines = [f"  {'shift':>5} {'key':>3} {'chi2':>12} {'p':>8}", "  " + "-" * 32]
    for row in profile:
        flag = " <-- best" if row["shift"] == best else ""
        lines.append(f"  {row['shift']:>5} {row['letter']:>3} {row['chi']:>12.3f} "
                     f"{row['p_value']:>8.4f}{flag}")
    return "\n".join(lines)


def format_decode_preview(decoded: str, width: int = 70) -> str:
    """Format a decoded string with line wrapping and offsets."""
    flat = decoded.replace("\n", " ")
    return "\n".join(
        f"  {i:4d}: {flat[i:i + width]}" for i in range(0, len(flat), width)
    )
