"""Tests for QuerySpec parsing and QueryBuilder."""

import pytest

from resourceforge.errors import BadRequest
from resourceforge.query import QueryBuilder, QuerySpec, ResultPage, condition, group


@pytest.fixture
def builder(settings):
    return QueryBuilder(settings)


# =============================================================================
# QuerySpec / ResultPage
# =============================================================================


class TestQuerySpec:
    def test_defaults(self):
        spec = QuerySpec.from_params({})
        assert spec.where == {}
        assert spec.page == 1
        assert spec.per_page == 20
        assert spec.with_ == []
        assert spec.appends == []
        assert spec.with_trash is False

    def test_parses_all_params(self):
        spec = QuerySpec.from_params({
            "where": '{"status": "lead"}',
            "page": "2",
            "perPage": "5",
            "with": "Company",
            "appends": '["initials", "score"]',
            "withTrash": "true",
            "sort": "-created_at,name",
        })
        assert spec.where == {"status": "lead"}
        assert spec.page == 2
        assert spec.per_page == 5
        assert spec.with_ == ["Company"]
        assert spec.appends == ["initials", "score"]
        assert spec.with_trash is True
        assert spec.sort == ["-created_at", "name"]

    @pytest.mark.parametrize("params", [
        {"where": "{not json"},
        {"where": "[1, 2]"},
        {"page": "two"},
        {"perPage": "1.5"},
        {"appends": "[broken"},
    ])
    def test_malformed_params(self, params):
        with pytest.raises(BadRequest):
            QuerySpec.from_params(params)


class TestResultPage:
    def test_last_page(self):
        page = ResultPage(page=2, per_page=20, total=45, data=[])
        assert page.last_page == 3

    def test_to_dict(self):
        page = ResultPage(page=1, per_page=20, total=0, data=[])
        assert page.to_dict() == {
            "page": 1,
            "perPage": 20,
            "total": 0,
            "lastPage": 0,
            "data": [],
        }


# =============================================================================
# Field selection and pagination
# =============================================================================


class TestBuildList:
    def test_selects_only_listable_stored_fields(self, builder, contact, member):
        query = builder.build_list(contact, QuerySpec(), member)
        assert "notes" not in query.fields
        assert "_actions" not in query.fields
        assert query.fields[0] == "id"
        assert "name" in query.fields

    def test_pagination_offset(self, builder, contact, member):
        query = builder.build_list(contact, QuerySpec(page=2, per_page=20), member)
        assert query.offset == 20
        assert query.limit == 20
        assert query.page == 2

    def test_page_below_one_is_clamped(self, builder, contact, member):
        query = builder.build_list(contact, QuerySpec(page=-3), member)
        assert query.page == 1
        assert query.offset == 0

    def test_non_positive_per_page_uses_default(self, builder, contact, member):
        query = builder.build_list(contact, QuerySpec(per_page=0), member)
        assert query.per_page == 20

    def test_per_page_is_capped(self, builder, contact, member, settings):
        query = builder.build_list(contact, QuerySpec(per_page=100_000), member)
        assert query.per_page == settings.max_per_page

    def test_with_trash_is_carried(self, builder, contact, member):
        assert builder.build_list(contact, QuerySpec(with_trash=True), member).with_trash

    def test_relations_are_validated(self, builder, contact, member):
        query = builder.build_list(contact, QuerySpec(with_=["Company", "Company"]), member)
        assert query.relations == ["Company"]

        with pytest.raises(BadRequest, match="Unknown relation"):
            builder.build_list(contact, QuerySpec(with_=["Invoice"]), member)

    def test_sort(self, builder, contact, member):
        query = builder.build_list(contact, QuerySpec(sort=["-created_at", "name"]), member)
        assert query.sort == [
            {"field": "created_at", "direction": "desc"},
            {"field": "name", "direction": "asc"},
        ]

    def test_sort_on_unlisted_field_rejected(self, builder, contact, member):
        with pytest.raises(BadRequest):
            builder.build_list(contact, QuerySpec(sort=["notes"]), member)


class TestBuildExport:
    def test_ref_relations_added_and_deduplicated(self, builder, contact, member):
        columns = {k: d for k, d in contact.listable_fields().items() if k != "_actions"}
        query = builder.build_export(contact, QuerySpec(with_=["Company"]), member, columns)
        assert query.relations == ["Company"]

    def test_no_pagination(self, builder, contact, member):
        columns = contact.listable_fields()
        query = builder.build_export(contact, QuerySpec(page=3, per_page=5), member, columns)
        assert query.limit is None
        assert query.offset == 0


# =============================================================================
# Filters
# =============================================================================


class TestWhereConditions:
    def test_shorthand_forms(self, builder, contact):
        conditions = builder.where_conditions(
            contact, {"status": "lead", "os": ["ios", "android"], "email": None}
        )
        assert conditions == [
            condition("status", "eq", "lead"),
            condition("os", "in", ["ios", "android"]),
            condition("email", "isNull"),
        ]

    def test_explicit_operators(self, builder, contact):
        conditions = builder.where_conditions(
            contact, {"salary": {"gte": 10, "lt": 20}, "name": {"icontains": "ad"}}
        )
        assert conditions == [
            condition("salary", "gte", 10),
            condition("salary", "lt", 20),
            condition("name", "icontains", "ad"),
        ]

    def test_unknown_field(self, builder, contact):
        with pytest.raises(BadRequest, match="Unknown field"):
            builder.where_conditions(contact, {"nope": 1})

    def test_virtual_field_is_not_filterable(self, builder, contact):
        with pytest.raises(BadRequest):
            builder.where_conditions(contact, {"_actions": 1})

    def test_operator_not_allowed_for_type(self, builder, contact):
        with pytest.raises(BadRequest, match="not supported"):
            builder.where_conditions(contact, {"name": {"gt": "a"}})

    @pytest.mark.parametrize("where", [
        {"salary": {"between": [1]}},
        {"status": {"in": "lead"}},
    ])
    def test_operand_shape_checked(self, builder, contact, where):
        with pytest.raises(BadRequest):
            builder.where_conditions(contact, where)


class TestScoping:
    def test_unscoped_actor_keeps_client_constraints(self, builder, contact, member):
        result = builder.build_filter(contact, {"user_ids": "someone"}, member)
        assert result == group([condition("user_ids", "eq", "someone")])

    def test_scoped_actor_constraint_overrides_client(self, builder, contact, scoped):
        result = builder.build_filter(contact, {"user_ids": "someone", "status": "lead"}, scoped)
        assert result == group([
            condition("status", "eq", "lead"),
            condition("user_ids", "eq", "user-2"),
        ])

    def test_scoped_actor_on_entity_without_owner_field(self, builder, note, scoped):
        result = builder.build_filter(note, {}, scoped)
        assert result == group([condition("id", "isNull")])

    def test_system_actor_is_never_scoped(self, builder):
        from resourceforge.auth import ActorContext

        actor = ActorContext(roles=["admin"], permissions={"*"}, is_system=True)
        actor.permissions.add("groups.@")
        assert not builder.is_scoped(actor)

    def test_restrict_field_is_configurable(self, settings, contact, scoped):
        settings.restrict_field = "os"
        result = QueryBuilder(settings).build_filter(contact, {}, scoped)
        assert result == group([condition("os", "eq", "user-2")])


class TestTextSearchFilter:
    def test_multi_field_or_replaces_literal_key(self, builder, contact, member):
        result = builder.text_search_filter(
            contact, "name title", {"name title": "abc", "status": "lead"}, member
        )
        assert result == group([
            group(
                [condition("name", "icontains", "abc"), condition("title", "icontains", "abc")],
                "or",
            ),
            condition("status", "eq", "lead"),
        ])

    def test_single_field_search_is_case_insensitive_substring(self, builder, contact, member):
        result = builder.text_search_filter(contact, "name", {"name": "Ad"}, member)
        assert result == group([group([condition("name", "icontains", "Ad")], "or")])

    def test_no_search_term(self, builder, contact, member):
        assert builder.text_search_filter(contact, "name", {}, member) == group([])

    def test_unknown_text_field(self, builder, contact, member):
        with pytest.raises(BadRequest):
            builder.text_search_filter(contact, "name nickname", {}, member)

    def test_scoping_still_applies(self, builder, contact, scoped):
        result = builder.text_search_filter(contact, "name", {"name": "a"}, scoped)
        assert condition("user_ids", "eq", "user-2") in result["conditions"]
