"""Tests for pid extraction and correlation."""

from aflogcat.pid import ProcessLineFilter, correlate, extract_pid, filter_by_pid

LINES = [
    "05-14 10:23:45.000 D/AppsFlyer_6.14.0(  111): CONVERSION-{}",
    "05-14 10:23:45.100 D/OtherTag(  222): hello",
    "05-14 10:23:45.200 D/AppsFlyer_6.14.0(  222): LAUNCH-{}",
    "05-14 10:23:45.300 I/App(  111): user tapped button",
    "--------- beginning of main",
    "05-14 10:23:45.400 D/AppsFlyer_6.14.0(  111): INAPP-{}",
    "05-14 10:23:45.500 D/OtherTag(  222): bye",
]


class TestExtractPid:
    def test_padded_pid(self):
        assert extract_pid("05-14 10:23:45.000 D/Tag(  111): msg") == 111

    def test_unpadded_pid(self):
        assert extract_pid("05-14 10:23:45.000 D/Tag(4321): msg") == 4321

    def test_first_group_wins(self):
        assert extract_pid("D/Tag( 12): value (34)") == 12

    def test_no_pid(self):
        assert extract_pid("--------- beginning of main") is None
        assert extract_pid("D/Tag(abc): msg") is None


class TestCorrelate:
    def test_newest_tagged_line_wins(self):
        assert correlate(LINES, "AppsFlyer_") == 111

    def test_tagged_line_without_pid_is_skipped(self):
        lines = LINES + ["AppsFlyer_ stray line with no pid"]
        assert correlate(lines, "AppsFlyer_") == 111

    def test_no_match(self):
        assert correlate(LINES, "NotPresent") is None
        assert correlate([], "AppsFlyer_") is None


class TestFilterByPid:
    def test_keeps_only_exact_pid_in_order(self):
        assert filter_by_pid(LINES, 111) == [LINES[0], LINES[3], LINES[5]]

    def test_lines_without_pid_excluded(self):
        filtered = filter_by_pid(LINES, 222)
        assert "--------- beginning of main" not in filtered
        assert filtered == [LINES[1], LINES[2], LINES[6]]

    def test_prefix_pid_does_not_match(self):
        assert filter_by_pid(["D/Tag( 1111): x"], 111) == []


class TestProcessLineFilter:
    def test_tagged_lines_and_current_pid(self):
        keep = ProcessLineFilter("AppsFlyer_")
        assert keep(LINES) == [LINES[0], LINES[2], LINES[5]]
        assert keep.pid == 111

    def test_pid_carries_across_batches(self):
        keep = ProcessLineFilter("AppsFlyer_")
        assert keep([LINES[0]]) == [LINES[0]]
        assert keep([LINES[3], LINES[1]]) == [LINES[3]]

    def test_untagged_dropped_before_any_tagged_line(self):
        keep = ProcessLineFilter("AppsFlyer_")
        assert keep([LINES[3], LINES[4]]) == []
        assert keep.pid is None
