# tests/test_scanner.py
"""
Tests for finding the convenience symbols an expression references.
"""

from triggerexpr.catalog import BindingDefinition, EventTypeTag, build_catalog
from triggerexpr.reader import is_symbol, read, read_one, to_source
from triggerexpr.resolver import resolve
from triggerexpr.scanner import ReferenceScanner, ScannedBinding, null_safe, scan
from tests.conftest import TIMESTAMP_MASTER_LAYOUT

TABLE = resolve(EventTypeTag.BEAT, build_catalog(TIMESTAMP_MASTER_LAYOUT))


class TestScan:

    def test_finds_referenced_bindings_sorted(self):
        result = scan(read("(and master? (> ts 0))"), TABLE)
        assert [b.name for b in result] == ["master?", "ts"]
        assert all(isinstance(b, ScannedBinding) for b in result)

    def test_extract_is_table_tree(self):
        (binding,) = scan(read("ts"), TABLE)
        assert binding.extract is TABLE["ts"].extract

    def test_unknown_symbols_ignored(self):
        assert scan(read("(+ tempo 1)"), TABLE) == ()

    def test_nested_in_vectors_and_lets(self):
        result = scan(read("(let [x [1 (inc ts)]] x)"), TABLE)
        assert [b.name for b in result] == ["ts"]

    def test_duplicates_bound_once(self):
        result = scan(read("(if ts (+ ts ts) ts)"), TABLE)
        assert len(result) == 1

    def test_keywords_do_not_match(self):
        table = dict(TABLE)
        table[":ts"] = TABLE["ts"]
        assert scan(read("(get m :ts)"), table) == ()

    def test_string_literals_do_not_match(self):
        assert scan(read('(str "ts")'), TABLE) == ()

    def test_empty_tree(self):
        assert scan(read(""), TABLE) == ()

    def test_empty_table(self):
        assert scan(read("(and master? ts)"), {}) == ()

    def test_deterministic_order(self):
        a = scan(read("(list ts master?)"), TABLE)
        b = scan(read("(list master? ts)"), TABLE)
        assert [x.name for x in a] == [x.name for x in b]

    def test_hand_built_definition_carries_extraction(self):
        table = {"x": BindingDefinition("x", "(.device-number status)")}
        (binding,) = scan(read("x"), table)
        assert binding.extract is not None
        assert to_source(binding.extract) == "(.device-number status)"

    def test_quoted_vector_contents_scanned(self):
        result = scan(read("(list '[ts])"), TABLE)
        assert [b.name for b in result] == ["ts"]


class TestNullSafe:

    def test_wraps_in_when_status(self):
        wrapped = null_safe(read_one("(.is-master status)"))
        assert is_symbol(wrapped[0], "when")
        assert is_symbol(wrapped[1], "status")
        assert to_source(wrapped) == "(when status (.is-master status))"

    def test_scan_flag_wraps_every_extraction(self):
        result = scan(read("(and master? ts)"), TABLE, nil_status=True)
        assert [to_source(b.extract) for b in result] == [
            "(when status (.is-master status))",
            "(when status (.current-timestamp status))",
        ]

    def test_flag_off_leaves_extraction_alone(self):
        (binding,) = scan(read("ts"), TABLE, nil_status=False)
        assert to_source(binding.extract) == "(.current-timestamp status)"


class TestReferenceScanner:

    def test_found_map(self):
        scanner = ReferenceScanner(TABLE)
        scanner.walk(read_one("(when master? 1)"))
        assert set(scanner.found) == {"master?"}
