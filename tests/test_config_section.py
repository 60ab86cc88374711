import json

from daeutil.config_section import (
    Function,
    Item,
    ItemType,
    Param,
    RoutingRule,
    Section,
)


def _sip_rule():
    return RoutingRule(
        and_functions=[
            Function("sip", params=[Param(val="192.168.0.0/24")]),
            Function("sip", negated=True, params=[Param(val="192.168.0.252/30")]),
        ],
        outbound=Function("direct"),
    )


def test_routing_rule_matches_config_text():
    rule = _sip_rule()
    assert (
        rule.to_string(False, False, False)
        == "sip(192.168.0.0/24) && !sip(192.168.0.252/30) -> direct"
    )


def test_routing_rule_compact_drops_spaces():
    rule = _sip_rule()
    loose = rule.to_string(False, False, False)
    compact = rule.to_string(False, True, False)
    assert compact == loose.replace(" && ", "&&").replace(" -> ", "->")


def test_routing_rule_replace_params_with_count():
    rule = _sip_rule()
    out = rule.to_string(True, False, False)
    assert "192.168" not in out
    assert out.count(f"[n = {1}]") == 2


def test_param_key_value():
    assert Param(key="policy", val="random").to_string(False, False) == "policy: random"
    assert Param(key="tproxy_port", val="12345").to_string(False, False) == "tproxy_port: 12345"


def test_param_compact_key_value():
    loose = Param(key="ingress_interface", val="docker0").to_string(False, False)
    compact = Param(key="ingress_interface", val="docker0").to_string(True, False)
    assert compact == loose.replace(": ", ":")


def test_param_without_key_is_bare_value():
    assert Param(val="https://LINK").to_string(False, False) == "https://LINK"


def test_param_quoted_round_trips():
    for val in ["plain", 'with "quotes"', "back\\slash", "tab\tnew\nline"]:
        quoted = Param(val=val).to_string(False, True)
        assert quoted.startswith('"') and quoted.endswith('"')
        assert json.loads(quoted) == val


def test_param_quoted_with_key_keeps_key_bare():
    out = Param(key="check_url", val="a b").to_string(False, True)
    key, _, rest = out.partition(": ")
    assert key == "check_url"
    assert json.loads(rest) == "a b"


def test_param_with_functions():
    param = Param(key="policy", and_functions=[Function("fixed", params=[Param(val="0")])])
    assert param.to_string(False, False) == "policy: fixed(0)"


def test_param_with_several_functions_joined():
    param = Param(
        key="filter",
        and_functions=[
            Function("name", params=[Param(key="keyword", val="sg")]),
            Function("name", params=[Param(key="keyword", val="disney")]),
        ],
    )
    loose = param.to_string(False, False)
    compact = param.to_string(True, False)
    assert loose.count(" && ") == 1
    assert compact.count("&&") == 1
    assert " " not in compact


def test_function_omit_empty():
    f = Function("direct")
    assert f.to_string(False, False, True) == "direct"
    assert f.to_string(False, False, False) == "direct()"


def test_function_negated_prefix():
    f = Function("sip", negated=True, params=[Param(val="10.0.0.0/8")])
    assert f.to_string(False, False, True) == "!sip(10.0.0.0/8)"


def test_function_shows_at_most_five_params():
    params = [Param(val=f"p{i}") for i in range(7)]
    out = Function("f", params=params).to_string(False, False, False)
    assert "..." in out
    assert "p4" in out
    assert "p5" not in out
    assert "p6" not in out


def test_function_five_params_has_no_ellipsis():
    params = [Param(val=f"p{i}") for i in range(5)]
    out = Function("f", params=params).to_string(True, False, False)
    assert "..." not in out
    assert out.count(",") == len(params) - 1


def test_item_types():
    assert Item.routing_rule(_sip_rule()).type is ItemType.ROUTING_RULE
    assert Item.param(Param(val="x")).type is ItemType.PARAM
    assert str(ItemType.SECTION) == "Section"


def test_item_to_string_indents_content():
    item = Item.param(Param(key="policy", val="random"))
    lines = item.to_string(False, False).split("\n")
    assert lines[0] == "type: Param"
    assert lines[1] == "\tpolicy: random"


def test_item_unknown_value():
    assert Item(ItemType.PARAM, 42).to_string(False, False) == "<Unknown>\n"


def test_section_to_string():
    section = Section(
        "global",
        [
            Item.param(Param(key="tproxy_port", val="12345")),
            Item.param(Param(key="ingress_interface", val="docker0")),
        ],
    )
    lines = section.to_string(False, False).split("\n")
    assert lines[0] == "section: global"
    assert all(line.startswith("\t") for line in lines[1:])
    assert [line.strip() for line in lines[1:]] == [
        "type: Param",
        "tproxy_port: 12345",
        "type: Param",
        "ingress_interface: docker0",
    ]


def test_nested_section_item():
    inner = Section("my_group", [Item.param(Param(key="policy", val="random"))])
    outer = Section("group", [Item.section(inner)])
    lines = outer.to_string(False, False).split("\n")
    assert lines[0] == "section: group"
    assert lines[2].strip() == "section: my_group"
    assert lines[-1].strip() == "policy: random"