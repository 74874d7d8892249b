# xtmpl_runtime.py

import collections.abc
import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Optional

from jinja2 import DictLoader, TemplateNotFound, TemplateSyntaxError, Undefined, UndefinedError, pass_context
from jinja2.runtime import Macro
from jinja2.sandbox import ImmutableSandboxedEnvironment, SecurityError

# imported for their namespace registrations
import xtmpl.xtmpl_slice
import xtmpl.xtmpl_stdlib
from xtmpl.xtmpl_capabilities import (
    CapabilitySet, Namespace, RootContext, build_capability_set, known_namespaces,
    namespace_handles, operation,
)
from xtmpl.xtmpl_conv import to_string
from xtmpl.xtmpl_datatypes import (
    ArgumentError, CoercionError, CollectionPolicyViolation, CustomError, PermissionDenied,
    RaiseSignal, ReturnSignal,
)

logger = logging.getLogger(__name__)

# ===================================================================
# 1. Always-present builtins
# ===================================================================

def _return(value: Any = None):
    """Stop the current evaluation and make `value` its result."""
    raise ReturnSignal(value)


def _error(message: str, payload: Any = None):
    """Abort the whole evaluation with an application error."""
    raise RaiseSignal(to_string(message), payload)


def _data_context(data: Any) -> Dict[str, Any]:
    if data is None:
        return {}
    if isinstance(data, collections.abc.Mapping):
        return dict(data)
    return {"data": data}


# ===================================================================
# 2. Sub-evaluation
# ===================================================================

class Tmpl(Namespace, namespace="tmpl"):
    """Enhanced template execution.

    {% macro greet(name) %}Hello {{ name }}{% endmacro %}
    {{ tmpl.exec("greet", "World") }}   -> Hello World
    """

    @operation
    @pass_context
    def exec(self, context, name, *data):
        if len(data) > 1:
            raise ArgumentError("only one argument is allowed")
        return self._exec(context, name, data)

    async def _exec(self, context, name, data):
        target = context.resolve_or_missing(name)
        try:
            if isinstance(target, Macro):
                # a macro without parameters simply ignores the data
                args = data if (target.arguments or target.catch_varargs) else ()
                return str(await target(*args))
            environment = self._root.environment
            if environment.loader is None:
                raise TemplateNotFound(name)
            template = environment.get_template(name)
            return await template.render_async(_data_context(data[0] if data else None))
        except ReturnSignal as signal:
            # `return` ends the sub-evaluation only; `error` keeps propagating
            logger.debug("sub-template %r returned early", name)
            return signal.value


# ===================================================================
# 3. Environment setup
# ===================================================================

def func_map(environment, *allowed) -> Dict[str, Any]:
    """The globals a template sees: one handle per permitted namespace plus `return` and `error`.

    `allowed` is either a prebuilt CapabilitySet or any number of descriptors.
    """
    if len(allowed) == 1 and isinstance(allowed[0], CapabilitySet):
        capabilities = allowed[0]
    else:
        capabilities = build_capability_set(allowed)
    root = RootContext(environment, capabilities)
    funcs = {"return": _return, "error": _error}
    funcs.update(namespace_handles(root))
    return funcs


def _finalize(value):
    if isinstance(value, Undefined):
        return value
    return to_string(value)


def new_environment(*allowed, loader=None, **options) -> ImmutableSandboxedEnvironment:
    """A sandboxed async environment where only the allowed operations are reachable."""
    options.setdefault("autoescape", False)
    environment = ImmutableSandboxedEnvironment(
        loader=loader, enable_async=True, finalize=_finalize, **options
    )
    # hidden namespaces must be undefined, not shadowed by a jinja default (e.g. `dict`)
    for name in known_namespaces():
        environment.globals.pop(name, None)
    environment.globals.update(func_map(environment, *allowed))
    return environment


# ===================================================================
# 4. Top-level execution
# ===================================================================

async def _stream(template, writer, data: Any) -> None:
    try:
        async for chunk in template.generate_async(_data_context(data)):
            writer.write(chunk)
    except ReturnSignal as signal:
        logger.debug("template %r returned early", template.name)
        writer.write(to_string(signal.value))
    except RaiseSignal as signal:
        logger.debug("template %r raised %r", template.name, signal.message)
        raise CustomError(signal.message, signal.payload) from None


async def execute(template, writer, data: Any = None) -> None:
    """Execute a template, writing output to `writer` as it is produced.

    An early `return` completes normally: the value is written after whatever
    output already reached the writer. An `error` raises CustomError; output
    written before it stays written.
    """
    await _stream(template, writer, data)


async def execute_template(environment, writer, name: str, data: Any = None) -> None:
    """Execute the named template of `environment`'s loader; see `execute`."""
    template = environment.get_template(name)
    await _stream(template, writer, data)


async def quick_execute(source: str, data: Any = None, *allowed) -> str:
    """Parse and execute `source` with the allowed functions and return the output."""
    environment = new_environment(*allowed)
    template = environment.from_string(source)
    buf = io.StringIO()
    await execute(template, buf, data)
    return buf.getvalue()


# ===================================================================
# 5. Script Execution
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a template execution."""
    status: Literal['success', 'error']
    output: str = ""
    error_message: Optional[str] = None
    error_line: Optional[int] = None
    error: Optional[BaseException] = None

    def format_error(self) -> str:
        """Formats an error message with the line number if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_line is not None and not msg.startswith("Error on line "):
            return f"Error on line {self.error_line}: {msg}"
        return msg


class TemplateRunner:
    """Parses and executes templates against one capability configuration.

    The capability set is built once and shared by every execution. Unlike
    `execute`, the runner never raises: every failure comes back as an
    ExecutionResult carrying whatever output was produced before it.
    """

    def __init__(self, *allowed, templates: Optional[Mapping[str, str]] = None, loader=None):
        if templates is not None and loader is None:
            loader = DictLoader(dict(templates))
        self.capabilities = build_capability_set(allowed)
        self.environment = new_environment(self.capabilities, loader=loader)

    def _format_runtime_error(self, e: Exception) -> str:
        match e:
            case TemplateSyntaxError():
                return f"TemplateSyntaxError: {e.message}"
            case PermissionDenied():
                return f"PermissionDenied: {e}"
            case CustomError():
                return f"CustomError: {e.message}"
            case CoercionError():
                return f"CoercionError: {e}"
            case CollectionPolicyViolation():
                return f"CollectionPolicyViolation: {e}"
            case ArgumentError():
                return f"ArgumentError: {e}"
            case UndefinedError():
                return f"UndefinedError: {e}"
            case SecurityError():
                return f"SecurityError: {e}"
            case TemplateNotFound():
                return f"TemplateNotFound: {e.name}"
            case _:
                return f"InternalError: {e}"

    def _error_result(self, e: Exception, output: str) -> ExecutionResult:
        msg = self._format_runtime_error(e)
        logger.debug("execution failed: %s", msg)
        return ExecutionResult(
            status='error',
            output=output,
            error_message=msg,
            error_line=getattr(e, 'lineno', None),
            error=e,
        )

    async def _run(self, template, data: Any) -> ExecutionResult:
        buf = io.StringIO()
        try:
            await execute(template, buf, data)
        except Exception as e:
            return self._error_result(e, buf.getvalue())
        return ExecutionResult(status='success', output=buf.getvalue())

    async def handle_template(self, source: str, data: Any = None) -> ExecutionResult:
        """The main entry point to execute a template source."""
        try:
            template = self.environment.from_string(source)
        except TemplateSyntaxError as e:
            return self._error_result(e, "")
        return await self._run(template, data)

    async def handle_named(self, name: str, data: Any = None) -> ExecutionResult:
        """Execute a template known to the runner's loader."""
        try:
            template = self.environment.get_template(name)
        except (TemplateNotFound, TemplateSyntaxError) as e:
            return self._error_result(e, "")
        return await self._run(template, data)
