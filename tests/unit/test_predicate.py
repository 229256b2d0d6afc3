from hoh_gitops.authorizer.predicate import (
    ALLOW_ALL,
    DENY_ALL,
    json_path,
    quote_literal,
    translate_expression,
    translate_queries,
    translate_result,
)

NAME_MATCH = "COALESCE(payload -> 'metadata' ->> 'name' = 'c1', FALSE)"


def ref(*parts):
    head, *rest = parts
    return {
        "type": "ref",
        "value": [{"type": "var", "value": head}]
        + [{"type": "string", "value": part} for part in rest],
    }


def name_equals(value, operator="eq", negated=None):
    expression = {
        "index": 0,
        "terms": [
            ref(operator),
            ref("input", "cluster", "metadata", "name"),
            {"type": "string", "value": value},
        ],
    }
    if negated is not None:
        expression["negated"] = negated
    return expression


def test_no_queries_denies_all():
    assert translate_queries([]) == DENY_ALL
    assert translate_result(None) == DENY_ALL
    assert translate_result({}) == DENY_ALL


def test_single_empty_conjunction_allows_all():
    assert translate_result({"queries": [[]]}) == ALLOW_ALL


def test_equality_on_cluster_name():
    predicate = translate_result({"queries": [[name_equals("c1")]]})

    assert predicate == f"(({NAME_MATCH}) AND TRUE) OR FALSE"


def test_negated_expression_is_exact_complement():
    positive = translate_expression(name_equals("c1"))
    negated = translate_expression(name_equals("c1", negated=True))

    assert positive == f"({NAME_MATCH})"
    assert negated == f"(NOT {positive})"
    # COALESCE keeps the condition two-valued when the json path is missing
    assert positive.startswith("(COALESCE(")


def test_unknown_operator_falls_back_by_polarity():
    assert translate_expression(name_equals("c1", operator="neq")) == "(FALSE)"
    assert translate_expression(name_equals("c1", operator="neq", negated=True)) == "(NOT (TRUE))"


def test_malformed_expressions_never_widen_access():
    assert translate_expression("junk") == "(FALSE)"
    assert translate_expression({"negated": True, "terms": []}) == "(NOT (TRUE))"
    assert translate_expression({"terms": [ref("eq"), ref("input", "user"), ref("x")]}) == "(FALSE)"


def test_reference_to_whole_cluster_is_rejected():
    expression = {
        "terms": [ref("eq"), ref("input", "cluster"), {"type": "string", "value": "c1"}]
    }

    assert translate_expression(expression) == "(FALSE)"


def test_multiple_conjunctions():
    predicate = translate_queries(
        [
            [name_equals("c1"), name_equals("c2", negated=True)],
            [],
            "not-a-list",
        ]
    )

    assert predicate == (
        f"(({NAME_MATCH}) AND "
        "(NOT (COALESCE(payload -> 'metadata' ->> 'name' = 'c2', FALSE))) AND TRUE)"
        " OR (TRUE) OR FALSE"
    )


def test_string_literals_are_escaped():
    assert quote_literal("o'brien") == "'o''brien'"

    predicate = translate_result({"queries": [[name_equals("x' OR '1'='1")]]})
    assert "'x'' OR ''1''=''1'" in predicate


def test_json_path():
    assert json_path(["name"]) == "payload ->> 'name'"
    assert json_path(["metadata", "labels", "env"]) == (
        "payload -> 'metadata' -> 'labels' ->> 'env'"
    )


def test_malformed_result_denies_all():
    assert translate_result({"queries": {"not": "a list"}}) == DENY_ALL
    assert translate_result("garbage") == DENY_ALL
