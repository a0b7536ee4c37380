"""
Data models for push events and pipeline runs.

These models represent the domain objects used throughout the application,
independent of how they arrive (HTTP, replay file) or where results go.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any


class PayloadError(ValueError):
    """Raised when an inbound push payload cannot be decoded."""


def _field(data: dict[str, Any], name: str, kind: type, default: Any) -> Any:
    """
    Look up a payload field, preferring an exact-case key.

    Webhook senders disagree on capitalisation ("Ref" vs "ref"). A key
    spelled exactly as ``name`` wins; otherwise the first key matching
    ``name`` ignoring case is used.

    Args:
        data: Decoded JSON object
        name: Documented field name to look for
        kind: Expected JSON type of the value
        default: Value returned when the field is absent or null

    Returns:
        The field value, or ``default``

    Raises:
        PayloadError: If the field is present with the wrong JSON type
    """
    if name in data:
        value = data[name]
    else:
        wanted = name.lower()
        key = next((key for key in data if key.lower() == wanted), None)
        if key is None:
            return default
        value = data[key]

    if value is None:
        return default
    if not isinstance(value, kind):
        raise PayloadError(
            f"field {name}: expected {kind.__name__}, got {type(value).__name__}"
        )
    return value


@dataclass(frozen=True)
class Author:
    """Author of a pushed commit."""

    username: str = ""

    @property
    def profile_url(self) -> str:
        return f"https://github.com/{self.username}"


@dataclass(frozen=True)
class Commit:
    """A single commit entry from a push payload."""

    message: str = ""
    url: str = ""
    author: Author = Author()

    @classmethod
    def from_dict(cls, data: Any) -> "Commit":
        """Create a commit from its JSON object."""
        if not isinstance(data, dict):
            raise PayloadError(f"commit: expected object, got {type(data).__name__}")
        author = _field(data, "Author", dict, {})
        return cls(
            message=_field(data, "Message", str, ""),
            url=_field(data, "URL", str, ""),
            author=Author(username=_field(author, "Username", str, "")),
        )


@dataclass(frozen=True)
class PushEvent:
    """
    The webhook payload describing a single repository push.

    Only the fields the runner needs are kept: the pushed ref, the
    resulting commit hash and the pushed commits.
    """

    ref: str
    after: str
    commits: tuple[Commit, ...] = ()

    @property
    def head_commit(self) -> Commit:
        """The single commit a run reports on."""
        return self.commits[0]

    @classmethod
    def from_dict(cls, data: Any) -> "PushEvent":
        """
        Create a push event from a decoded JSON object.

        Args:
            data: Decoded request body

        Returns:
            PushEvent with missing fields defaulted to empty values

        Raises:
            PayloadError: If the body is not an object or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise PayloadError(f"expected object, got {type(data).__name__}")
        commits = _field(data, "Commits", list, [])
        return cls(
            ref=_field(data, "Ref", str, ""),
            after=_field(data, "After", str, ""),
            commits=tuple(Commit.from_dict(commit) for commit in commits),
        )

    @classmethod
    def from_json(cls, body: bytes | str) -> "PushEvent":
        """
        Decode a push event from a raw request body.

        Raises:
            PayloadError: If the body is not valid JSON or not shaped like a push
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise PayloadError(str(e)) from e
        return cls.from_dict(data)


@dataclass(frozen=True)
class PipelineStep:
    """
    One external command executed in a fixed working directory.

    Steps are built once from the settings; only the pushed commit hash
    is substituted per run.
    """

    workdir: Path
    argv: tuple[str, ...]

    def render(self) -> str:
        """Render the invocation as it appears in failure reports."""
        return " ".join(self.argv)

    def to_dict(self) -> dict[str, Any]:
        return {"workdir": str(self.workdir), "argv": list(self.argv)}


@dataclass(frozen=True)
class StepFailure:
    """
    The captured failure of a pipeline step.

    A failure always names the step that produced it and carries the
    step's standard-error text.
    """

    step: PipelineStep
    stderr: str

    @property
    def invocation(self) -> str:
        return self.step.render()

    @property
    def log(self) -> str:
        """Failure log in Slack markup, before escaping."""
        return f"*Command run: *`{self.invocation}`\n{self.stderr}"


@dataclass(frozen=True)
class RunOutcome:
    """Terminal result of one pipeline run: success, or the first step failure."""

    failure: StepFailure | None = None

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def passed(cls) -> "RunOutcome":
        return cls()

    @classmethod
    def failed(cls, failure: StepFailure) -> "RunOutcome":
        return cls(failure=failure)
