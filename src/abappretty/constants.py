"""Project-wide named constants.

Object type codes follow the ADT ``TYPE/SUBTYPE`` notation used in
repository node structures and object references.
"""

# Object types whose source can be expanded into includes
PROGRAM = "PROG/P"
PROGRAM_INCLUDE = "PROG/I"
CLASS = "CLAS/OC"
INTERFACE = "INTF/OI"
FUNCTION_GROUP = "FUGR/F"
FUNCTION_MODULE = "FUGR/FF"
FUNCTION_GROUP_INCLUDE = "FUGR/I"
PACKAGE = "DEVC/K"

SUPPORTED_TYPES: frozenset[str] = frozenset(
    {
        PROGRAM,
        PROGRAM_INCLUDE,
        CLASS,
        INTERFACE,
        FUNCTION_GROUP,
        FUNCTION_MODULE,
        FUNCTION_GROUP_INCLUDE,
        PACKAGE,
    }
)

# Short main types accepted in object lists
TYPE_ALIASES: dict[str, str] = {
    "PROG": PROGRAM,
    "CLAS": CLASS,
    "INTF": INTERFACE,
    "FUGR": FUNCTION_GROUP,
    "DEVC": PACKAGE,
}

# Passing this as the abaplint option selects abaplint's built-in defaults
ABAPLINT_DEFAULT = "default"

# Lock refusals of this type are "not lockable" unless the message says locked
RESOURCE_NO_ACCESS = "ExceptionResourceNoAccess"

DEFAULT_CONNECTIONS_PATH = "~/.config/abappretty/connections.json"
CONNECTIONS_ENV = "ABAPPRETTY_CONNECTIONS"
PASSWORD_ENV = "ABAPPRETTY_PASSWORD"
KEYRING_SERVICE = "abappretty"
