"""Tests for AnalysisSession."""

import json

import numpy as np
import pytest

from lab_session import AnalysisConfig, AnalysisSession
from vigenere_lab import KeyState, UNKNOWN_PLAIN, encode_vigenere, generate_english_freq_text

LEMON = [11, 4, 12, 14, 13]


@pytest.fixture
def plaintext():
    return "Attack at dawn! Bring the maps, the rope and the lantern."


@pytest.fixture
def session(plaintext):
    s = AnalysisSession(encode_vigenere(plaintext, LEMON))
    s.pin_key_length(5)
    return s


@pytest.fixture
def long_session():
    """Synthetic English-frequency text under LEMON, ~600 letters per column."""
    rng = np.random.default_rng(11)
    return AnalysisSession(encode_vigenere(generate_english_freq_text(3000, rng), LEMON))


class TestDefaults:

    def test_empty_session(self):
        s = AnalysisSession()
        assert s.working_key_length == 1
        assert s.key_string() == "?"
        assert s.decode_preview() == ""
        assert s.repeats() == []
        assert s.kasiski_votes() == {}

    def test_default_config(self):
        cfg = AnalysisSession().config
        assert (cfg.ngram, cfg.pairwise, cfg.max_k, cfg.factor_limit) == (3, True, 30, 30)

    def test_out_of_range_column_clamped_on_construction(self):
        s = AnalysisSession("ABCDEABCDE", pinned_k=2, active_column=5, key=KeyState(2))
        assert s.active_column == 1
        assert s.active_column_text() == "BDACE"
        assert s.report()["column"] == "BDACE"

    def test_sessions_do_not_share_state(self):
        a = AnalysisSession("LXFOPVEFRNHR", pinned_k=5)
        b = AnalysisSession("LXFOPVEFRNHR", pinned_k=5)
        a.apply_key("LEMON")
        assert a.key_string() == "LEMON"
        assert b.key_string() == "?????"
        assert a.key is not b.key


class TestConfiguration:

    def test_configure(self):
        s = AnalysisSession("ABABABAB")
        s.configure(pairwise=False)
        assert s.config.pairwise is False
        assert s.repeat_table()[0] == {"gram": "ABA", "positions": [0, 2, 4],
                                       "distances": [2, 2]}

    def test_ngram_clamped_with_warning(self):
        s = AnalysisSession()
        with pytest.warns(UserWarning, match="ngram"):
            cfg = s.configure(ngram=9)
        assert cfg.ngram == 6

    def test_config_clamped_on_construction(self):
        with pytest.warns(UserWarning):
            s = AnalysisSession(config=AnalysisConfig(max_k=0, factor_limit=99))
        assert s.config.max_k == 1
        assert s.config.factor_limit == 40

    def test_unknown_setting_rejected(self):
        with pytest.raises(TypeError):
            AnalysisSession().configure(window=4)


class TestWorkingKeyLength:

    def test_from_kasiski(self):
        assert AnalysisSession("ABCDEABCDEABCDE").working_key_length == 5

    def test_from_ioc_when_no_repeats(self):
        s = AnalysisSession("ABCDEABCDE", config=AnalysisConfig(ngram=6, max_k=10))
        assert s.kasiski_candidates() == []
        assert s.working_key_length == 5

    def test_votes_filtered_to_max_k(self):
        s = AnalysisSession("ABCDEABCDEABCDE", config=AnalysisConfig(max_k=4))
        assert all(row["k"] <= 4 for row in s.kasiski_candidates())
        assert s.working_key_length == 2

    def test_pin_overrides_evidence(self):
        s = AnalysisSession("ABCDEABCDEABCDE")
        assert s.pin_key_length(3) == 3
        assert s.working_key_length == 3
        assert s.unpin_key_length() == 5

    def test_pin_clamped_with_warning(self):
        s = AnalysisSession()
        with pytest.warns(UserWarning, match="key length"):
            assert s.pin_key_length(99) == 40
        assert len(s.columns()) == 40

    def test_set_text_resyncs(self):
        s = AnalysisSession()
        assert s.set_text("ABCDEABCDEABCDE") == 5
        assert s.key_string() == "?????"


class TestKeyComposer:

    def test_apply_key_decodes(self, session, plaintext):
        view = session.apply_key("lemon")
        assert view == {"k": 5, "key": "LEMON", "preview": plaintext.upper()}

    def test_apply_key_cycles(self):
        s = AnalysisSession(pinned_k=5)
        assert s.apply_key("JACK")["key"] == "JACKJ"

    def test_apply_key_without_letters_is_ignored(self, session):
        session.apply_key("LEMON")
        assert session.apply_key("42 !")["key"] == "LEMON"

    def test_set_and_clear_shift(self, session):
        session.set_shift(4, column=1)
        session.set_shift(30, column=0)
        assert session.key_string() == "EE???"
        assert session.clear_shift(column=0)["key"] == "?E???"

    def test_set_shift_uses_active_column(self, session):
        session.select_column(3)
        session.set_shift(14)
        assert session.key_string() == "???O?"

    def test_partial_preview(self, session):
        session.apply_key("LEMON")
        session.clear_shift(column=2)
        preview = session.decode_preview()
        assert preview.startswith(f"AT{UNKNOWN_PLAIN}ACK A{UNKNOWN_PLAIN} DAWN!")

    def test_reset_key(self, session):
        session.apply_key("LEMON")
        assert session.reset_key()["key"] == "?????"

    def test_key_survives_resize(self, session):
        session.apply_key("LEMON")
        session.pin_key_length(3)
        assert session.key_string() == "LEM"
        session.pin_key_length(6)
        assert session.key_string() == "LEM???"

    def test_column_resets_on_key_length_change(self, session):
        session.select_column(4)
        session.pin_key_length(4)
        assert session.active_column == 0

    def test_select_column_clamped(self, session):
        assert session.select_column(12) == 4
        assert session.select_column(-1) == 0


class TestColumns:

    def test_columns_follow_working_length(self, session):
        cols = session.columns()
        assert len(cols) == 5
        assert "".join(cols[0][:2]) == session.stream[0] + session.stream[5]

    def test_active_column_text(self, session):
        session.select_column(2)
        assert session.active_column_text() == session.stream[2::5]

    def test_chi_profile_for_active_column(self, session):
        assert len(session.chi_profile()) == 26

    def test_commit_best_shift_per_column(self, long_session):
        long_session.pin_key_length(5)
        for col in range(5):
            long_session.commit_best_shift(column=col)
        assert long_session.key_string() == "LEMON"

    def test_best_shift_is_not_committed_until_asked(self, long_session):
        long_session.pin_key_length(5)
        assert long_session.best_shift(column=0) == 11
        assert long_session.key_string() == "?????"


class TestViews:

    def test_highlighted_stream(self):
        s = AnalysisSession("abc-abc x")
        s.select_gram("abc")
        assert s.selected_gram == "ABC"
        assert s.highlighted_stream() == "[ABC][ABC]X"

    def test_gram_selection_does_not_change_evidence(self):
        s = AnalysisSession("ABCDEABCDEABCDE")
        before = s.kasiski_votes()
        s.select_gram("BCD")
        assert s.kasiski_votes() == before

    def test_report_is_json_serializable(self, session):
        session.apply_key("LEMON")
        report = json.loads(json.dumps(session.report()))
        assert report["working_k"] == 5
        assert report["pinned_k"] == 5
        assert report["key"] == "LEMON"
        assert len(report["chi"]) == 26
        assert len(report["ioc"]) == 30
        assert report["text"]["analyzed_length"] == len(session.stream)

    def test_report_matches_individual_queries(self, long_session):
        long_session.pin_key_length(5)
        long_session.select_column(3)
        report = long_session.report()
        assert report["working_k"] == long_session.working_key_length
        assert report["column"] == long_session.active_column_text()
        assert report["best_shift"] == long_session.best_shift() == 14
        assert report["kasiski"] == long_session.kasiski_candidates()
        assert report["repeats"] == long_session.repeat_table()
