"""
Shared argument building for `--output-format stream-json` agents.

Gemini CLI and Qwen Code accept the same flags.
"""

from __future__ import annotations

from .base import BaseAdapter, valid_model_id


class StreamJsonAdapter(BaseAdapter):
    """Base for agents invoked as `<exe> -p <task> --output-format stream-json`."""

    option_names = (
        "approval_mode",
        "model",
        "include_directories",
        "continue_session",
        "resume",
    )

    def build_args(self, task: str, **kwargs) -> list[str]:
        args = ["-p", task, "--output-format", "stream-json"]

        mode = kwargs.get("approval_mode") or "yolo"
        if mode == "yolo":
            args.append("--yolo")
        elif mode != "default":
            args.extend(["--approval-mode", mode])

        model = valid_model_id(kwargs.get("model"))
        if model:
            args.extend(["-m", model])

        directories = kwargs.get("include_directories") or []
        if isinstance(directories, str):
            directories = [directories]
        for directory in directories:
            args.extend(["--include-directories", directory])

        if kwargs.get("continue_session") is True:
            args.append("--continue")

        resume = kwargs.get("resume")
        if resume:
            args.extend(["--resume", resume])

        return args
