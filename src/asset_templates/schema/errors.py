"""
Exceptions raised while loading and resolving template schemas.

All of them are fatal to building a registry: a schema set is either fully
consistent or it is not loaded at all.
"""


class SchemaError(Exception):
    """Base exception for all schema loading errors."""

    pass


class SchemaFormatError(SchemaError):
    """Raised when a schema document does not match the template grammar."""

    def __init__(self, message: str, path: str | None = None, schema_name: str | None = None):
        self.message = message
        self.path = path
        self.schema_name = schema_name
        location = ""
        if schema_name:
            location = f" in schema '{schema_name}'"
        if path:
            location += f" at '{path}'"
        super().__init__(f"{message}{location}")


class DuplicateSchemaError(SchemaError):
    """Raised when two documents in one schema set share a name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate schema name: {name}")


class DanglingReferenceError(SchemaError):
    """Raised when a property references a schema that is not in the set."""

    def __init__(self, schema_name: str, path: str, target: str, expected: str | None = None):
        self.schema_name = schema_name
        self.path = path
        self.target = target
        self.expected = expected
        kind = f"{expected} " if expected else ""
        super().__init__(
            f"Schema '{schema_name}' references unknown {kind}schema '{target}' at '{path}'"
        )


class CyclicSchemaError(SchemaError):
    """Raised when schemas contain each other with no intervening list.

    Attributes:
        cycle: Schema names forming the cycle, first name repeated at the end
    """

    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Cyclic schema reference: {' -> '.join(cycle)}")


class UnknownSchemaError(SchemaError, KeyError):
    """Raised when looking up a schema name the registry does not hold."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown schema: {name}")

    def __str__(self) -> str:
        return f"Unknown schema: {self.name}"
