from xtmpl.xtmpl_datatypes import (
    Kind, TypedList,
    XtmplError, PermissionDenied, CoercionError, UnsupportedKind, UnparseableText, Overflow,
    CollectionPolicyViolation, ArgumentError, CustomError, ConfigError,
    ControlSignal, ReturnSignal, RaiseSignal,
)
from xtmpl.xtmpl_capabilities import (
    Func, NamespaceFuncs, Funcs, CapabilitySet, build_capability_set,
    CMP, CONV, DICT, FILEPATH, JSON, OS, PATH, REGEXP, SLICE, STRINGS, TMPL, URL, SAFE, ALL,
    OS_ENVIRON, OS_EXPAND_ENV, OS_GETENV, OS_GETPID, OS_GETWD, OS_HOSTNAME, OS_LOOKUP_ENV,
    OS_READ_FILE, OS_SETENV, OS_USER_HOME_DIR, URL_JOIN_PATH, TMPL_EXEC,
)
from xtmpl.xtmpl_runtime import (
    func_map, new_environment, execute, execute_template, quick_execute,
    ExecutionResult, TemplateRunner,
)
from xtmpl.xtmpl_config import (
    load_capabilities, load_capabilities_file, capabilities_from_env, configure_logging,
)
