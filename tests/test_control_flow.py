import io

import pytest
from jinja2 import DictLoader

from xtmpl import (
    SAFE, ArgumentError, CustomError, ControlSignal, ReturnSignal, RaiseSignal,
    execute, execute_template, new_environment, quick_execute,
)


async def render(src: str, data=None) -> str:
    return await quick_execute(src, data, SAFE)


def test_control_signals_are_not_exceptions():
    assert not issubclass(ControlSignal, Exception)
    assert issubclass(ReturnSignal, ControlSignal)
    assert issubclass(RaiseSignal, ControlSignal)


@pytest.mark.asyncio
async def test_return_keeps_output_written_so_far():
    assert await render("Hello {{ return('World') }} and Universe") == "Hello World"


@pytest.mark.asyncio
async def test_return_without_value():
    assert await render("A{{ return() }}B") == "A"


@pytest.mark.asyncio
async def test_return_inside_loop_stops_everything():
    src = "{% for i in [1, 2, 3] %}{{ i }}{% if i == 2 %}{{ return('!') }}{% endif %}{% endfor %}done"
    assert await render(src) == "12!"


@pytest.mark.asyncio
async def test_error_keeps_partial_output():
    env = new_environment(SAFE)
    template = env.from_string("Hello {{ error('boom', 42) }} never")
    buf = io.StringIO()

    with pytest.raises(CustomError) as ei:
        await execute(template, buf)

    assert buf.getvalue() == "Hello "
    assert ei.value.message == "boom"
    assert ei.value.payload == 42


@pytest.mark.asyncio
async def test_error_without_user_data():
    src = """
{%- if not user -%}
{{ error("No user provided") }}
{%- endif -%}
Welcome, {{ user.name }}!
"""
    with pytest.raises(CustomError) as ei:
        await render(src, {})
    assert ei.value.message == "No user provided"
    assert await render(src, {"user": {"name": "Ann"}}) == "Welcome, Ann!"


@pytest.mark.asyncio
async def test_return_is_absorbed_by_sub_evaluation():
    src = """
{%- macro getName(user) -%}
{%- if not user -%}{{ return("Anonymous") }}{%- endif -%}
{{- return(user.name) -}}
{%- endmacro -%}
Welcome, {{ tmpl.exec("getName", user) }}!"""
    assert await render(src, {}) == "Welcome, Anonymous!"
    assert await render(src, {"user": {"name": "Frank"}}) == "Welcome, Frank!"


@pytest.mark.asyncio
async def test_sub_evaluation_per_item():
    src = """
{%- macro getName(user) -%}
{%- if not user.lastname -%}{{- return(user.firstname) -}}{%- endif -%}
{{ user.lastname }}, {{ user.firstname }}
{%- endmacro -%}
Users:
{% for user in users -%}
* {{ tmpl.exec("getName", user) }}
{% endfor -%}
"""
    data = {"users": [{"firstname": "Joe", "lastname": "Doe"}, {"firstname": "Alice"}]}
    assert await render(src, data) == "Users:\n* Doe, Joe\n* Alice\n"


@pytest.mark.asyncio
async def test_sub_evaluation_output_without_return():
    src = "{% macro hi() %}Hi{% endmacro %}[{{ tmpl.exec('hi') }}][{{ tmpl.exec('hi', 5) }}]"
    assert await render(src) == "[Hi][Hi]"


@pytest.mark.asyncio
async def test_sub_evaluation_returns_structured_values():
    src = (
        "{% macro info() %}{{ return(dict.new('a', 1)) }}{% endmacro %}"
        "{% set result = tmpl.exec('info') %}{{ result.a }}"
    )
    assert await render(src) == "1"


@pytest.mark.asyncio
async def test_error_passes_through_sub_evaluation():
    env = new_environment(SAFE)
    template = env.from_string(
        "{% macro bad() %}{{ error('nope') }}{% endmacro %}Start {{ tmpl.exec('bad') }} end"
    )
    buf = io.StringIO()
    with pytest.raises(CustomError) as ei:
        await execute(template, buf)
    assert ei.value.message == "nope"
    assert buf.getvalue() == "Start "


@pytest.mark.asyncio
async def test_sub_evaluation_accepts_one_argument_only():
    src = "{% macro hi(x) %}{{ x }}{% endmacro %}{{ tmpl.exec('hi', 1, 2) }}"
    with pytest.raises(ArgumentError) as ei:
        await render(src)
    assert str(ei.value) == "only one argument is allowed"


@pytest.mark.asyncio
async def test_named_templates():
    env = new_environment(SAFE, loader=DictLoader({
        "greet.txt": "Hello {{ name }}",
        "short.txt": "ignored{{ return(name) }}",
        "main.txt": "{{ tmpl.exec('greet.txt', dict.new('name', 'Ann')) }}/{{ tmpl.exec('short.txt', dict.new('name', 'Bob')) }}",
        "stop.txt": "Before {{ return(word) }} after",
    }))
    buf = io.StringIO()
    await execute_template(env, buf, "main.txt")
    assert buf.getvalue() == "Hello Ann/Bob"

    buf = io.StringIO()
    await execute_template(env, buf, "stop.txt", {"word": "End"})
    assert buf.getvalue() == "Before End"
