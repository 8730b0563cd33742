"""
ACL Error Taxonomy

Errors raised while turning remote or offline policy data into an
ACLDocument. Network and authentication failures live in
vaultviewer.client.errors instead.
"""


class ACLError(Exception):
    """Base class for ACL model errors"""


class MalformedACLError(ACLError):
    """
    The resolved-ACL payload does not have the expected shape.

    Raised for a wrong type at `root`, `exact_paths`, `glob_paths`,
    a per-path attribute mapping, or a `capabilities` field.
    """

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class ACLNoDataError(ACLError):
    """The remote read returned no payload at all"""


class DuplicatePathError(ACLError):
    """A rule table already holds a rule for this path"""

    def __init__(self, path: str):
        super().__init__(f"Duplicate rule for path: {path!r}")
        self.path = path


class PolicyParseError(ACLError):
    """An offline policy document is malformed"""

    def __init__(self, message: str, policy: str = "", path: str = ""):
        prefix = f"policy {policy!r}" if policy else "policy"
        if path:
            prefix = f"{prefix}, path {path!r}"
        super().__init__(f"{prefix}: {message}")
        self.policy = policy
        self.path = path


class FrozenTableError(ACLError):
    """A rule table that belongs to a published document was modified"""
