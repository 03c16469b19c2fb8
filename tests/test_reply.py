from mikrolink.wire.reply import (
    UNKNOWN_ERROR,
    ParsedResult,
    attributes,
    is_terminal,
    parse_response,
)


def test_rows_then_done():
    res = parse_response([["!re", "=name=ether1", "=type=ether"], ["!done"]])
    assert res.to_dict() == {"success": True, "data": [{"name": "ether1", "type": "ether"}]}


def test_trap_message():
    res = parse_response([["!trap", "=message=invalid user name or password"]])
    assert res.to_dict() == {"success": False, "message": "invalid user name or password"}


def test_trap_short_circuits_later_rows():
    res = parse_response([["!re", "=a=1"], ["!trap", "=message=boom"], ["!re", "=a=2"]])
    assert res == ParsedResult(success=False, message="boom")


def test_trap_without_message():
    res = parse_response([["!trap", "=category=1"]])
    assert not res.success
    assert res.message == UNKNOWN_ERROR


def test_fatal_message():
    res = parse_response([["!fatal", "session terminated on request"]])
    assert not res.success
    assert res.message == "session terminated on request"


def test_value_split_on_first_equals_only():
    res = parse_response([["!re", "=comment=a=b=c", "=script=:put 1=1"], ["!done"]])
    assert res.data == [{"comment": "a=b=c", "script": ":put 1=1"}]


def test_no_rows_is_empty_success():
    res = parse_response([["!done"]])
    assert res.success
    assert res.data == []


def test_done_ret_is_kept():
    res = parse_response([["!done", "=ret=*1A"]])
    assert res.ret == "*1A"
    assert res.to_dict() == {"success": True, "data": [], "ret": "*1A"}


def test_attributes_skip_non_attribute_words():
    assert attributes(["!re", "=.id=*1", "?ignored=1", "=flag"]) == {".id": "*1", "flag": ""}


def test_terminal_markers():
    assert is_terminal(["!done"])
    assert is_terminal(["!trap", "=message=x"])
    assert is_terminal(["!fatal", "bye"])
    assert not is_terminal(["!re", "=name=!done"])
    assert not is_terminal([])
