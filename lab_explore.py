"""
---
version: 0.2.0
created: 2026-10-15
updated: 2026-10-19
---

lab_explore.py — Print the key-length and column evidence for a ciphertext.

Sections:
  1. Input — raw vs analyzed length, selected n-gram highlighted
  2. Kasiski — repeated n-grams, distances, factor votes
  3. IoC — mean per-column IoC vs key length
  4. Columns — active column, chi-square per shift, key so far
  5. Preview — partial decode with the current key

Nothing is solved automatically: --best commits the chi-square pick for one
column only, and the working key length is whatever the evidence favours
unless --k pins it.

Usage:
    python3 lab_explore.py cipher.txt
    python3 lab_explore.py cipher.txt --kasiski --ngram 4 --successive
    python3 lab_explore.py cipher.txt --columns --k 5 --column 2 --best
    python3 lab_explore.py cipher.txt --preview --key LEMON
    python3 lab_explore.py --demo LEMON --json
"""

from __future__ import annotations

import argparse
import json
import sys

from lab_session import AnalysisConfig, AnalysisSession
from vigenere_lab import (
    DEFAULT_FACTOR_LIMIT, DEFAULT_MAX_K, DEFAULT_NGRAM, ENGLISH_IOC, RANDOM_IOC,
    UNKNOWN_PLAIN, encode_vigenere, letter_to_shift, normalize, text_stats,
    format_bar_series, format_chi_profile, format_decode_preview,
    format_repeat_table,
)

DEMO_PLAINTEXT = (
    "The method of repeated sequences rests on a simple observation. When the "
    "same fragment of plaintext happens to line up with the same part of the "
    "key, the same fragment of ciphertext appears, and the gap between the two "
    "appearances is a multiple of the key length. Counting the factors of many "
    "such gaps points toward the length of the key. Once the length is known "
    "the message falls apart into columns, and each column is nothing more "
    "than a simple shift of ordinary English, which the letter frequencies "
    "give away after a little patient counting by hand."
)


def banner(title: str) -> None:
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


# ============================================================================
# SECTIONS
# ============================================================================

def show_input(session: AnalysisSession) -> None:
    banner("SECTION 1: INPUT")
    stats = text_stats(session.raw)
    print(f"\nOriginal length:        {stats['raw_length']}")
    print(f"Analyzed (A-Z) length:  {stats['analyzed_length']}")
    if session.selected_gram:
        print(f"Highlighting:           {session.selected_gram}")
    print()
    print(format_decode_preview(session.highlighted_stream()))


def show_kasiski(session: AnalysisSession) -> None:
    banner("SECTION 2: KASISKI")
    cfg = session.config
    mode = "all pairs" if cfg.pairwise else "successive only"
    print(f"\nn-gram={cfg.ngram}  distances={mode}  factors<={cfg.factor_limit}  "
          f"max k={cfg.max_k}\n")
    print(format_repeat_table(session.repeat_table()))
    print("\nKey-length candidates (votes):")
    print(format_bar_series(session.kasiski_candidates(), "votes",
                            marker=session.working_key_length))


def show_ioc(session: AnalysisSession) -> None:
    banner("SECTION 3: IoC SWEEP")
    print(f"\nReferences: English ~{ENGLISH_IOC}, random ~{RANDOM_IOC}\n")
    print(format_bar_series(session.ioc_sweep(), "ioc",
                            marker=session.working_key_length))


def show_columns(session: AnalysisSession) -> None:
    banner("SECTION 4: COLUMNS")
    k = session.working_key_length
    source = "pinned" if session.pinned_k is not None else "from evidence"
    col = session.active_column
    best = session.best_shift()
    print(f"\nWorking key length: {k} ({source})")
    print(f"Key so far:         {session.key_string()}")
    print(f"\nColumn #{col + 1}:")
    print(format_decode_preview(session.active_column_text()))
    print(f"\nChi-square by shift (best: {best}):")
    print(format_chi_profile(session.chi_profile(), best=best))


def show_preview(session: AnalysisSession) -> None:
    banner("SECTION 5: PREVIEW")
    print(f"\nKey: {session.key_string()}  (unknown letters shown as {UNKNOWN_PLAIN})\n")
    print(format_decode_preview(session.decode_preview()))


# ============================================================================
# MAIN
# ============================================================================

def parse_assignment(text: str) -> tuple[int, int]:
    """Parse COL:SHIFT where COL is 1-based and SHIFT is 0-25 or a letter."""
    col, sep, value = text.partition(":")
    if not sep or not col.isdigit() or not value:
        raise argparse.ArgumentTypeError(f"expected COL:SHIFT, got '{text}'")
    if value.isdigit():
        shift = int(value)
    elif normalize(value) and len(value) == 1:
        shift = letter_to_shift(value)
    else:
        raise argparse.ArgumentTypeError(f"bad shift '{value}'")
    return int(col) - 1, shift


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vigenère key evidence: IoC, Kasiski, column chi-square")
    parser.add_argument("input", nargs="?",
                        help="Ciphertext file ('-' for stdin)")
    parser.add_argument("--demo", metavar="KEY",
                        help="Analyze a built-in passage encrypted with KEY")
    parser.add_argument("--input", dest="show_input", action="store_true",
                        help="Section 1: input summary")
    parser.add_argument("--kasiski", action="store_true",
                        help="Section 2: repeats and factor votes")
    parser.add_argument("--ioc", action="store_true",
                        help="Section 3: IoC sweep")
    parser.add_argument("--columns", action="store_true",
                        help="Section 4: column chi-square")
    parser.add_argument("--preview", action="store_true",
                        help="Section 5: partial decode")
    parser.add_argument("--json", action="store_true",
                        help="Print the full report as JSON instead")
    parser.add_argument("--ngram", type=int, default=DEFAULT_NGRAM,
                        help=f"Repeat length, 3-6 (default: {DEFAULT_NGRAM})")
    parser.add_argument("--successive", action="store_true",
                        help="Use successive distances only (default: all pairs)")
    parser.add_argument("--max-k", type=int, default=DEFAULT_MAX_K,
                        help=f"Largest key length charted (default: {DEFAULT_MAX_K})")
    parser.add_argument("--factor-limit", type=int, default=DEFAULT_FACTOR_LIMIT,
                        help=f"Largest factor voted for (default: {DEFAULT_FACTOR_LIMIT})")
    parser.add_argument("--k", type=int,
                        help="Pin the working key length (1-40)")
    parser.add_argument("--gram", default="",
                        help="Highlight this n-gram in the input section")
    parser.add_argument("--column", type=int, default=1,
                        help="Active column, 1-based (default: 1)")
    parser.add_argument("--key", default="",
                        help="Apply a key word (cycled across the key length)")
    parser.add_argument("--set", dest="assignments", action="append", default=[],
                        type=parse_assignment, metavar="COL:SHIFT",
                        help="Set one column's shift, e.g. 2:4 or 2:E (repeatable)")
    parser.add_argument("--best", action="store_true",
                        help="Commit the best chi-square shift for the active column")
    return parser


def load_text(parser: argparse.ArgumentParser, args: argparse.Namespace) -> str:
    if args.demo is not None:
        shifts = [letter_to_shift(c) for c in normalize(args.demo)]
        if not shifts:
            parser.error("--demo KEY needs at least one letter")
        return encode_vigenere(DEMO_PLAINTEXT, shifts)
    if args.input is None:
        parser.error("give a ciphertext file, '-' for stdin, or --demo KEY")
    if args.input == "-":
        return sys.stdin.read()
    try:
        with open(args.input, encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        parser.error(f"cannot read {args.input}: {e}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    session = AnalysisSession(
        load_text(parser, args),
        config=AnalysisConfig(
            ngram=args.ngram,
            pairwise=not args.successive,
            max_k=args.max_k,
            factor_limit=args.factor_limit,
        ),
    )
    if args.k is not None:
        session.pin_key_length(args.k)
    session.select_gram(args.gram)
    session.select_column(args.column - 1)
    if args.key:
        session.apply_key(args.key)
    k = session.working_key_length
    for col, shift in args.assignments:
        if not 0 <= col < k:
            parser.error(f"--set column {col + 1} is outside the key (k={k})")
        session.set_shift(shift, column=col)
    if args.best:
        session.commit_best_shift()

    if args.json:
        print(json.dumps(session.report(), indent=2, ensure_ascii=False))
        return

    # Default: run everything
    run_all = not (args.show_input or args.kasiski or args.ioc
                   or args.columns or args.preview)

    if run_all or args.show_input:
        show_input(session)
    if run_all or args.kasiski:
        show_kasiski(session)
    if run_all or args.ioc:
        show_ioc(session)
    if run_all or args.columns:
        show_columns(session)
    if run_all or args.preview:
        show_preview(session)


if __name__ == "__main__":
    main()
