"""Data models shared by the generation pipeline and the build loop."""

from __future__ import annotations

from dataclasses import dataclass, field

# Relative forward-slash path -> file content. Insertion order is kept.
FileTree = dict


@dataclass
class CompileOutput:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def combined(self) -> str:
        return self.stdout + self.stderr


@dataclass
class FixOutcome:
    files_sent: dict
    response: str = ""
    files: dict = field(default_factory=dict)   # normalized replacements only

    @property
    def changed(self) -> bool:
        return bool(self.files)


@dataclass
class BuildAttempt:
    number: int                 # 1-based, strictly increasing per run
    error_text: str
    files_sent: dict = field(default_factory=dict)
    fix_response: str = ""
    files_patched: dict = field(default_factory=dict)
    compile_succeeded: bool = False


@dataclass(frozen=True)
class BuildResult:
    success: bool
    jar_path: str | None
    build_output: str
    build_id: str
    attempts_used: int
    degraded: bool = False
    attempts: tuple = ()

    def to_dict(self):
        return {
            "success": self.success,
            "status": "completed" if self.success else "failed",
            "jarPath": self.jar_path,
            "degraded": self.degraded,
            "attemptsUsed": self.attempts_used,
            "buildId": self.build_id,
        }


@dataclass
class InconsistencyIssue:
    file_a: str
    file_b: str
    issue: str
    fix: str


@dataclass
class GenerationResult:
    plugin_name: str
    files: dict
    build_id: str
    blueprint: str = ""
    build: BuildResult | None = None
    processing_time: float = 0.0
    cached: bool = False
