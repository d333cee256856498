"""
Tests for filter parsing and evaluation, sorting, formulas and collections.
"""

import pytest
from datetime import date, datetime, timezone


def _doc(doc_id: str, path: str | None = None, stats=None, **metadata):
    from vaultgraph.models import Document

    path = path or f"{doc_id}.md"
    folder = path.rsplit("/", 1)[0] if "/" in path else ""
    return Document(id=doc_id, title=doc_id, path=path, folder=folder, metadata=metadata, stats=stats)


def _stats(mtime: datetime):
    from vaultgraph.models import FileStats
    return FileStats(size=10, mtime=mtime, ctime=mtime)


# ============== Tests for parse_filter() ==============

class TestParseFilter:
    """Tests for turning YAML data into filter expressions."""

    def test_string_is_text(self):
        """Test a string becomes a textual predicate."""
        from vaultgraph.filters import TextFilter, parse_filter

        assert parse_filter('status == "done"') == TextFilter(text='status == "done"')

    def test_list_is_and(self):
        """Test a bare list is an implicit and."""
        from vaultgraph.filters import AndFilter, parse_filter

        parsed = parse_filter(["a", "b"])
        assert isinstance(parsed, AndFilter)
        assert len(parsed.operands) == 2

    def test_combinator_with_clauses(self):
        """Test a mapping with both a combinator and property keys ands them."""
        from vaultgraph.filters import AndFilter, OrFilter, PropertyFilter, parse_filter

        parsed = parse_filter({"or": [{"status": "a"}, {"status": "b"}], "priority": {">": 1}})
        assert isinstance(parsed, AndFilter)
        assert isinstance(parsed.operands[0], OrFilter)
        assert isinstance(parsed.operands[1], PropertyFilter)
        assert parsed.operands[1].clauses[0].operators == {">": 1}

    def test_not_over_list(self):
        """Test 'not' with a list operand negates an or."""
        from vaultgraph.filters import NotFilter, OrFilter, parse_filter

        parsed = parse_filter({"not": [{"status": "a"}, {"status": "b"}]})
        assert isinstance(parsed, NotFilter)
        assert isinstance(parsed.operand, OrFilter)

    @pytest.mark.parametrize("raw", [{"and": "nope"}, 42, {"status": {}}])
    def test_malformed_shapes(self, raw, diagnostics):
        """Test uninterpretable shapes become InvalidFilter with a diagnostic."""
        from vaultgraph.diagnostics import DiagnosticCode
        from vaultgraph.filters import InvalidFilter, parse_filter

        parsed = parse_filter(raw, diagnostics, "ctx")
        assert isinstance(parsed, InvalidFilter)
        assert diagnostics.by_code(DiagnosticCode.MALFORMED_FILTER)[0].target == "ctx"

    def test_empty_mapping_matches_everything(self, diagnostics):
        """Test an empty mapping has no clauses to fail."""
        from vaultgraph.filters import AndFilter, parse_filter
        from vaultgraph.query import evaluate_filter

        parsed = parse_filter({}, diagnostics, "ctx")
        assert parsed == AndFilter(operands=[])
        assert evaluate_filter(parsed, _doc("a"))
        assert len(diagnostics) == 0


# ============== Tests for evaluate_filter() ==============

class TestEvaluateFilter:
    """Tests for the filter evaluator."""

    def test_empty_combinators(self):
        """Test and([]) is true and or([]) is false."""
        from vaultgraph.filters import AndFilter, OrFilter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a")
        assert evaluate_filter(AndFilter(), doc) is True
        assert evaluate_filter(OrFilter(), doc) is False
        assert evaluate_filter(None, doc) is True

    @pytest.mark.parametrize("raw", [
        {"status": "active"},
        {"status": "done"},
        'hasTag("project")',
        {"or": []},
    ])
    def test_double_negation(self, raw):
        """Test not(not(F)) evaluates like F."""
        from vaultgraph.filters import NotFilter, parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", status="active", tags=["project"])
        inner = parse_filter(raw)
        assert evaluate_filter(NotFilter(operand=NotFilter(operand=inner)), doc) == evaluate_filter(inner, doc)

    def test_tag_and_not_archived(self):
        """Test the project-but-not-archived filter."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        expr = parse_filter({"and": [{"file.tag": "project"}, {"not": {"file.tag": "archived"}}]})
        docs = [
            _doc("a", tags=["project"]),
            _doc("b", tags=["project", "archived"]),
            _doc("c", tags=["other"]),
        ]
        assert [d.id for d in docs if evaluate_filter(expr, d)] == ["a"]

    def test_text_predicates(self):
        """Test the two understood textual forms and that other text never matches."""
        from vaultgraph.filters import TextFilter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", status="active", tags=["#project"])
        assert evaluate_filter(TextFilter(text='status == "active"'), doc)
        assert not evaluate_filter(TextFilter(text='status != "active"'), doc)
        assert evaluate_filter(TextFilter(text='hasTag("project")'), doc)
        assert evaluate_filter(TextFilter(text='file.hasTag("project")'), doc)
        assert not evaluate_filter(TextFilter(text="status.startsWith('a')"), doc)

    def test_invalid_never_matches(self):
        """Test InvalidFilter is false."""
        from vaultgraph.filters import InvalidFilter
        from vaultgraph.query import evaluate_filter

        assert evaluate_filter(InvalidFilter(reason="x"), _doc("a")) is False

    def test_literal_equality(self):
        """Test scalar equality across value kinds."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", status="active", priority=2, done=False, tags=["x", "y"], due=date(2024, 1, 15))
        assert evaluate_filter(parse_filter({"status": "active"}), doc)
        assert evaluate_filter(parse_filter({"priority": 2}), doc)
        assert evaluate_filter(parse_filter({"note.priority": "2"}), doc)
        assert evaluate_filter(parse_filter({"done": False}), doc)
        assert evaluate_filter(parse_filter({"tags": "y"}), doc)
        assert evaluate_filter(parse_filter({"due": "2024-01-15"}), doc)
        assert evaluate_filter(parse_filter({"missing": None}), doc)
        assert not evaluate_filter(parse_filter({"missing": "x"}), doc)
        assert not evaluate_filter(parse_filter({"status": None}), doc)

    def test_string_operators(self):
        """Test case-insensitive string operators and regex matches."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("alpha", status="In Progress")
        assert evaluate_filter(parse_filter({"status": {"contains": "progress"}}), doc)
        assert evaluate_filter(parse_filter({"file.name": {"startsWith": "AL", "endsWith": "pha"}}), doc)
        assert evaluate_filter(parse_filter({"status": {"matches": "^in\\s"}}), doc)
        assert not evaluate_filter(parse_filter({"status": {"matches": "("}}), doc)
        assert evaluate_filter(parse_filter({"status": {"!=": "Done"}}), doc)

    def test_number_operators(self):
        """Test numeric comparisons and numeric strings."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", priority=3, rank="7")
        assert evaluate_filter(parse_filter({"priority": {">": 2, "<=": 3}}), doc)
        assert not evaluate_filter(parse_filter({"priority": {">=": 4}}), doc)
        assert evaluate_filter(parse_filter({"rank": {">": 5}}), doc)

    def test_date_operators(self):
        """Test before/after/on against date values."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", due=date(2024, 1, 15), created="2023-12-01")
        assert evaluate_filter(parse_filter({"due": {"before": "2024-02-01"}}), doc)
        assert evaluate_filter(parse_filter({"due": {"after": "2024-01-01"}}), doc)
        assert evaluate_filter(parse_filter({"due": {"on": "2024-01-15T18:00:00"}}), doc)
        assert evaluate_filter(parse_filter({"created": {"before": "2024-01-01"}}), doc)

    def test_unparseable_date_operand_fails(self):
        """Test a date comparison against garbage does not match either way."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", due=date(2024, 1, 15))
        assert not evaluate_filter(parse_filter({"due": {"before": "soon"}}), doc)
        assert not evaluate_filter(parse_filter({"due": {"after": "soon"}}), doc)

    def test_operator_outside_family_fails(self):
        """Test an operator that does not apply to the value's kind fails the clause."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", priority=3, flag=True, tags=["x"])
        assert not evaluate_filter(parse_filter({"priority": {"contains": "3"}}), doc)
        assert not evaluate_filter(parse_filter({"flag": {">": 1}}), doc)
        assert not evaluate_filter(parse_filter({"tags": {">": 1}}), doc)
        assert not evaluate_filter(parse_filter({"missing": {"contains": "x"}}), doc)

    def test_list_contains(self):
        """Test list contains checks membership, case-insensitively."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", tags=["Project", "web"])
        assert evaluate_filter(parse_filter({"file.tags": {"contains": "project"}}), doc)
        assert not evaluate_filter(parse_filter({"file.tags": {"contains": "mobile"}}), doc)

    def test_file_builtins(self):
        """Test folder, extension and starred built-ins."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.query import evaluate_filter

        doc = _doc("a", path="Projects/Sub/a.md", starred=True)
        assert evaluate_filter(parse_filter({"file.inFolder": "Projects"}), doc)
        assert not evaluate_filter(parse_filter({"file.inFolder": "Proj"}), doc)
        assert evaluate_filter(parse_filter({"file.folder": "Projects/Sub"}), doc)
        assert evaluate_filter(parse_filter({"file.ext": "md"}), doc)
        assert evaluate_filter(parse_filter({"file.starred": True}), doc)

    def test_declared_type_coerces(self):
        """Test a declared number property compares numerically."""
        from vaultgraph.filters import parse_filter
        from vaultgraph.models import PropertyDef
        from vaultgraph.query import PropertyResolver, evaluate_filter

        doc = _doc("a", estimate="12")
        resolver = PropertyResolver({"estimate": PropertyDef(name="estimate", type="number")})
        assert evaluate_filter(parse_filter({"estimate": 12}), doc, resolver)


# ============== Tests for sort_documents() ==============

class TestSortDocuments:
    """Tests for multi-key sorting."""

    def test_nulls_last_both_directions(self):
        """Test missing values sort after present ones in either direction."""
        from vaultgraph.models import SortRule
        from vaultgraph.query import sort_documents

        docs = [
            _doc("jan", stats=_stats(datetime(2024, 1, 1, tzinfo=timezone.utc))),
            _doc("none"),
            _doc("june", stats=_stats(datetime(2023, 6, 1, tzinfo=timezone.utc))),
        ]

        ascending = sort_documents(docs, [SortRule(property="file.mtime", direction="ASC")])
        descending = sort_documents(docs, [SortRule(property="file.mtime", direction="DESC")])
        assert [d.id for d in ascending] == ["june", "jan", "none"]
        assert [d.id for d in descending] == ["jan", "june", "none"]

    def test_multi_key_and_stability(self):
        """Test the first rule is primary, later rules break ties, and ties keep input order."""
        from vaultgraph.models import SortRule
        from vaultgraph.query import sort_documents

        docs = [
            _doc("a", status="b", priority=1),
            _doc("b", status="a", priority=1),
            _doc("c", status="b", priority=5),
            _doc("d", status="a", priority=1),
        ]
        rules = [SortRule(property="status"), SortRule(property="priority", direction="DESC")]

        result = sort_documents(docs, rules)
        assert [d.id for d in result] == ["b", "d", "c", "a"]
        assert [d.id for d in sort_documents(result, rules)] == ["b", "d", "c", "a"]

    def test_numbers_not_lexicographic(self):
        """Test numbers compare numerically and strings case-insensitively."""
        from vaultgraph.models import SortRule
        from vaultgraph.query import sort_documents

        docs = [_doc("a", n=10, s="beta"), _doc("b", n=9, s="Alpha"), _doc("c", n=100, s="alpha")]

        assert [d.id for d in sort_documents(docs, [SortRule(property="n")])] == ["b", "a", "c"]
        assert [d.id for d in sort_documents(docs, [SortRule(property="s")])] == ["b", "c", "a"]

    def test_unknown_property_keeps_order(self):
        """Test sorting on an unknown property leaves the order unchanged."""
        from vaultgraph.models import SortRule
        from vaultgraph.query import sort_documents

        docs = [_doc("c"), _doc("a"), _doc("b")]
        assert [d.id for d in sort_documents(docs, [SortRule(property="nope", direction="DESC")])] == ["c", "a", "b"]

    def test_mixed_kinds_independent_of_input_order(self):
        """Test a column mixing numbers and text sorts the same from any starting order."""
        from itertools import permutations

        from vaultgraph.models import SortRule
        from vaultgraph.query import sort_documents

        docs = [_doc("two", p=2), _doc("ten", p=10), _doc("onex", p="1x"), _doc("high", p="high")]
        rules = [SortRule(property="p")]

        orders = {tuple(d.id for d in sort_documents(list(perm), rules)) for perm in permutations(docs)}
        assert orders == {("two", "ten", "onex", "high")}

        result = sort_documents(docs, rules)
        assert [d.id for d in sort_documents(result, rules)] == ["two", "ten", "onex", "high"]


# ============== Tests for formulas ==============

class TestFormulas:
    """Tests for the formula language."""

    def _eval(self, expression, doc=None, derived=None):
        from vaultgraph.formulas import compile_formula, evaluate
        from vaultgraph.query import PropertyResolver

        doc = doc or _doc("a", status="active", priority=2)
        return evaluate(compile_formula(expression), doc, PropertyResolver(derived=derived))

    def test_arithmetic_precedence(self):
        """Test operator precedence and parentheses."""
        assert self._eval("1 + 2 * 3") == 7
        assert self._eval("(1 + 2) * 3") == 9
        assert self._eval("7 % 4 - -1") == 4

    def test_property_references(self):
        """Test metadata and built-in references."""
        assert self._eval("priority * 10") == 20
        assert self._eval('concat(upper(status), "-", file.name)') == "ACTIVE-a"
        assert self._eval('status + "!"') == "active!"

    def test_if_and_logic(self):
        """Test if() with comparisons and boolean operators."""
        assert self._eval('if(priority > 1 && status == "active", "high", "low")') == "high"
        assert self._eval('if(!(priority > 1), "high")') is None
        assert self._eval("true || missing > 1") is True

    def test_functions(self):
        """Test the built-in function table."""
        assert self._eval('length("abc")') == 3
        assert self._eval("round(2.567, 2)") == 2.57
        assert self._eval("max(1, 5, 3)") == 5
        assert self._eval('contains("Hello", "ELL")') is True
        assert self._eval('date("2024-01-10") - date("2024-01-01")') == 9

    def test_string_escapes(self):
        """Test escaped quotes inside string literals."""
        assert self._eval(r'"say \"hi\""') == 'say "hi"'

    def test_formula_references(self):
        """Test formula.<name> reads derived values."""
        assert self._eval("formula.base + 1", derived={"a": {"base": 41}}) == 42

    @pytest.mark.parametrize("expression", [
        "1 +", "(1", "1 2", "@", "",
        "(" * 400 + "1" + ")" * 400,
        "!" * 400 + "true",
        "lower(" * 100 + "\"x\"" + ")" * 100,
    ])
    def test_parse_errors(self, expression):
        """Test malformed expressions raise FormulaError."""
        from vaultgraph.formulas import FormulaError, compile_formula

        with pytest.raises(FormulaError):
            compile_formula(expression)

    @pytest.mark.parametrize("expression", ["1 / 0", "missing * 2", '"a" < 1', "nope(1)"])
    def test_runtime_errors(self, expression):
        """Test evaluation errors raise FormulaError."""
        from vaultgraph.formulas import FormulaError

        with pytest.raises(FormulaError):
            self._eval(expression)

    def test_coerce_result(self):
        """Test declared result types."""
        from vaultgraph.formulas import FormulaError, coerce_result

        assert coerce_result("42", "number") == 42
        assert coerce_result(3, "string") == "3"
        assert coerce_result(0, "boolean") is False
        assert coerce_result("false", "boolean") is False
        assert coerce_result(" True ", "boolean") is True
        assert coerce_result("2024-01-01", "date") == datetime(2024, 1, 1, tzinfo=timezone.utc)
        with pytest.raises(FormulaError):
            coerce_result("abc", "number")
        with pytest.raises(FormulaError):
            coerce_result("maybe", "boolean")

    def test_evaluate_formulas(self, diagnostics):
        """Test formulas chain in order and failures become None with one diagnostic."""
        from vaultgraph.diagnostics import DiagnosticCode
        from vaultgraph.formulas import evaluate_formulas
        from vaultgraph.models import Collection, FormulaDef

        collection = Collection(id="c", title="C", formulas=[
            FormulaDef(name="double", expression="priority * 2"),
            FormulaDef(name="plus", expression="formula.double + 1"),
            FormulaDef(name="broken", expression="priority +"),
        ])
        docs = [_doc("a", priority=2), _doc("b")]

        derived = evaluate_formulas(collection, docs, diagnostics)

        assert derived["a"] == {"double": 4, "plus": 5, "broken": None}
        assert derived["b"] == {"double": None, "plus": None, "broken": None}
        assert "priority" not in docs[1].metadata
        messages = [d.message for d in diagnostics.by_code(DiagnosticCode.FORMULA_ERROR)]
        assert len(messages) == 3
        assert any("does not parse" in m for m in messages)

    def test_oversized_formulas_become_diagnostics(self, diagnostics):
        """Test deeply nested or very long formulas fail per formula without aborting the run."""
        from vaultgraph.diagnostics import DiagnosticCode
        from vaultgraph.formulas import evaluate_formulas
        from vaultgraph.models import Collection, FormulaDef

        collection = Collection(id="c", title="C", formulas=[
            FormulaDef(name="deep", expression="(" * 400 + "1" + ")" * 400),
            FormulaDef(name="long", expression="1" + " + 1" * 5000),
            FormulaDef(name="fine", expression="priority + 1"),
        ])

        derived = evaluate_formulas(collection, [_doc("a", priority=2)], diagnostics)

        assert derived["a"]["deep"] is None
        assert derived["a"]["fine"] == 3
        assert derived["a"]["long"] is None
        assert len(diagnostics.by_code(DiagnosticCode.FORMULA_ERROR)) == 2

    def test_boolean_result_type(self, diagnostics):
        """Test a boolean formula over a "false" string yields False."""
        from vaultgraph.formulas import evaluate_formulas
        from vaultgraph.models import Collection, FormulaDef

        collection = Collection(id="c", title="C", formulas=[
            FormulaDef(name="flag", expression="lower(done)", result_type="boolean"),
        ])

        derived = evaluate_formulas(collection, [_doc("a", done="FALSE"), _doc("b", done="true")], diagnostics)

        assert derived["a"]["flag"] is False
        assert derived["b"]["flag"] is True


# ============== Tests for collections ==============

class TestParseCollection:
    """Tests for collection definitions."""

    def _parse(self, definition, diagnostics, path="Bases/Projects.base"):
        from vaultgraph.collections_store import parse_collection
        from vaultgraph.models import RawCollection

        return parse_collection(RawCollection(path=path, definition=definition), diagnostics)

    def test_defaults(self, diagnostics):
        """Test an empty definition gets one table view."""
        collection = self._parse("", diagnostics)

        assert collection.id == "projects"
        assert collection.title == "Projects"
        assert collection.folder == "Bases"
        assert [(v.type, v.name) for v in collection.views] == [("table", "Table")]
        assert collection.filter is None
        assert len(diagnostics) == 0

    def test_front_block_and_description(self, diagnostics):
        """Test a '---' block holds the definition and the rest is the description."""
        collection = self._parse("---\ntitle: My Projects\nviews:\n  - type: cards\n---\n\nAll projects.\n", diagnostics)

        assert collection.title == "My Projects"
        assert collection.description == "All projects."
        assert collection.views[0].type == "cards"
        assert collection.views[0].name == "Cards"

    def test_view_fields(self, diagnostics):
        """Test view keys are read."""
        collection = self._parse({
            "views": [{
                "type": "calendar",
                "name": "Due",
                "order": ["file.name", "due"],
                "sort": [{"property": "due", "direction": "desc"}, "file.name"],
                "columnSize": {"file.name": 200, "bad": "x"},
                "limit": "5",
                "filters": {"status": "active"},
                "groupBy": {"property": "status"},
                "dateProperty": "due",
                "image": "cover",
            }],
        }, diagnostics)

        view = collection.views[0]
        assert view.type == "calendar"
        assert [(r.property, r.direction) for r in view.sort] == [("due", "DESC"), ("file.name", "ASC")]
        assert view.column_size == {"file.name": 200}
        assert view.limit == 5
        assert view.filter is not None
        assert view.group_by == "status"
        assert view.date_property == "due"
        assert view.image == "cover"

    def test_bad_view_values(self, diagnostics):
        """Test unknown types, bad limits and bad sort rules fall back with diagnostics."""
        from vaultgraph.diagnostics import DiagnosticCode

        collection = self._parse({
            "views": [
                {"type": "kanban", "limit": "lots", "sort": [{"direction": "ASC"}, {"property": "x", "direction": "up"}]},
                "not a view",
            ],
        }, diagnostics)

        view = collection.views[0]
        assert len(collection.views) == 1
        assert view.type == "table"
        assert view.limit is None
        assert [(r.property, r.direction) for r in view.sort] == [("x", "ASC")]
        assert len(diagnostics.by_code(DiagnosticCode.MALFORMED_VIEW)) == 3
        assert len(diagnostics.by_code(DiagnosticCode.MALFORMED_SORT)) == 2

    def test_duplicate_view_names(self, diagnostics):
        """Test duplicate view names get a suffix so each result is addressable."""
        collection = self._parse({"views": [{"type": "table"}, {"type": "table"}]}, diagnostics)

        assert [v.name for v in collection.views] == ["Table", "Table (2)"]

    def test_properties_and_formulas(self, diagnostics):
        """Test map and list forms of properties and formulas."""
        collection = self._parse({
            "properties": {"status": {"type": "text", "displayName": "Status", "required": True}, "note.due": None},
            "formulas": [{"name": "late", "formula": "due < date(\"2024-01-01\")", "type": "boolean"}, {"bad": 1}],
        }, diagnostics)

        assert collection.properties["status"].display_name == "Status"
        assert collection.properties["status"].required is True
        assert "note.due" in collection.properties
        assert [(f.name, f.result_type) for f in collection.formulas] == [("late", "boolean")]

    def test_not_a_mapping(self, diagnostics):
        """Test a non-mapping definition is skipped."""
        from vaultgraph.diagnostics import DiagnosticCode

        assert self._parse("- a\n- b\n", diagnostics) is None
        assert self._parse("views: [unclosed", diagnostics) is None
        assert len(diagnostics.by_code(DiagnosticCode.MALFORMED_COLLECTION)) == 2


class TestEvaluateCollections:
    """Tests for collection evaluation against a store."""

    @pytest.fixture
    def evaluated(self, make_raw, diagnostics):
        from vaultgraph.collections_store import build_collection_store
        from vaultgraph.models import RawCollection
        from vaultgraph.store import build_store

        store = build_store([
            make_raw("a.md", {"status": "active", "priority": 2, "tags": ["project"]}),
            make_raw("b.md", {"status": "done", "priority": 1, "tags": ["project", "archived"]}),
            make_raw("c.md", {"status": "active", "tags": ["project"]}),
            make_raw("d.md", {"status": "active", "priority": 5, "tags": ["other"]}),
        ], diagnostics)
        collections = build_collection_store([RawCollection(path="Projects.base", definition={
            "filters": {"and": [{"file.tag": "project"}, {"not": {"file.tag": "archived"}}]},
            "properties": {"priority": {"type": "number", "default": 0}},
            "formulas": {"label": 'concat(upper(status), "-", file.name)'},
            "views": [
                {"type": "table", "name": "By priority", "order": ["file.name", "status", "priority"],
                 "sort": [{"property": "priority", "direction": "DESC"}]},
                {"type": "cards", "name": "Active", "filters": {"status": "active"}, "limit": 1,
                 "sort": [{"property": "file.name", "direction": "DESC"}]},
                {"type": "table", "name": "Board", "groupBy": "status"},
            ],
        })], diagnostics)
        return collections.evaluate(store, diagnostics).get("projects")

    def test_matched_documents(self, evaluated):
        """Test the root filter keeps store order."""
        assert evaluated.matched_documents == ["a", "c"]

    def test_view_sort_and_limit(self, evaluated):
        """Test each view narrows, sorts and limits the matched documents."""
        assert evaluated.results["By priority"].document_ids == ["a", "c"]
        assert evaluated.results["Active"].document_ids == ["c"]

    def test_display_properties(self, evaluated):
        """Test display properties follow the view order and include formula outputs."""
        display = evaluated.results["By priority"].display
        assert display["a"] == {"file.name": "a", "status": "active", "priority": 2, "formula.label": "ACTIVE-a"}
        assert display["c"]["priority"] == 0

    def test_groups(self, evaluated):
        """Test grouping by a property."""
        assert evaluated.results["Board"].groups == {"active": ["a", "c"]}

    def test_resolve_by_path_and_title(self, evaluated, diagnostics):
        """Test collections resolve by file name, path and title."""
        from vaultgraph.collections_store import CollectionStore

        store = CollectionStore({evaluated.id: evaluated})
        assert store.resolve("Projects.base").id == "projects"
        assert store.resolve("Bases/Projects.base#Board").id == "projects"
        assert store.resolve("projects").id == "projects"
        assert store.resolve("Other.base") is None

    def test_empty_filters_match_all(self, make_raw, diagnostics):
        """Test empty root and view filter mappings keep every document."""
        from vaultgraph.collections_store import build_collection_store
        from vaultgraph.models import RawCollection
        from vaultgraph.store import build_store

        store = build_store([make_raw("a.md"), make_raw("b.md")], diagnostics)
        collections = build_collection_store([RawCollection(path="All.base", definition={
            "filters": {},
            "views": [{"type": "table", "name": "Everything", "filters": {}}],
        })], diagnostics)

        evaluated = collections.evaluate(store, diagnostics).get("all")
        assert evaluated.matched_documents == ["a", "b"]
        assert evaluated.results["Everything"].document_ids == ["a", "b"]
        assert len(diagnostics) == 0

    def test_view_filter_uses_declared_types(self, make_raw, diagnostics):
        """Test a view filter compares a declared number property numerically."""
        from vaultgraph.collections_store import build_collection_store
        from vaultgraph.models import RawCollection
        from vaultgraph.store import build_store

        store = build_store([
            make_raw("a.md", {"estimate": "12"}),
            make_raw("b.md", {"estimate": "3"}),
        ], diagnostics)
        collections = build_collection_store([RawCollection(path="Work.base", definition={
            "properties": {"estimate": {"type": "number"}},
            "views": [{"type": "table", "name": "Large", "filters": {"estimate": {">": 10}}}],
        })], diagnostics)

        evaluated = collections.evaluate(store, diagnostics).get("work")
        assert evaluated.results["Large"].document_ids == ["a"]

    def test_collection_suffix_skips_existing_id(self, diagnostics):
        """Test a colliding collection is not renamed onto another collection's ID."""
        from vaultgraph.collections_store import build_collection_store
        from vaultgraph.models import RawCollection

        collections = build_collection_store([
            RawCollection(path="Projects.base", definition={}),
            RawCollection(path="Archive/projects.base", definition={}),
            RawCollection(path="Projects-2.base", definition={}),
        ], diagnostics)

        assert collections.get("projects").path == "Projects.base"
        assert collections.get("projects-2").path == "Projects-2.base"
        assert collections.get("projects-3").path == "Archive/projects.base"
