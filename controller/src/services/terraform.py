"""
Terraform CLI wrapper.

Each command runs in the configured working directory and raises the
pipeline error mapped to it when terraform exits non-zero.
"""

import json
import logging
import os
import subprocess
from typing import Dict, List, Optional, Type, Any

from controller.src.errors import (
    PipelineError,
    FormatViolation,
    InitFailure,
    ValidationFailure,
    PlanFailure,
    ApplyFailure,
)

logger = logging.getLogger(__name__)

PLAN_FILE = "tfplan"
DESTROY_PLAN_FILE = "tfplan-destroy"

class TerraformCLI:
    def __init__(
        self,
        binary: str,
        working_dir: str,
        env: Optional[Dict[str, str]] = None,
    ):
        self.binary = binary
        self.working_dir = working_dir
        self.env = env or {}

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env.update(self.env)
        env["TF_IN_AUTOMATION"] = "1"
        env["TF_INPUT"] = "0"
        return env

    def run(self, args: List[str], error_cls: Type[PipelineError]) -> str:
        """Run a terraform subcommand and return its stdout."""
        command = [self.binary] + args
        logger.info(f"Running terraform {' '.join(args)} in {self.working_dir}")

        try:
            result = subprocess.run(
                command,
                cwd=self.working_dir,
                env=self._environment(),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise error_cls(f"Failed to run terraform: {e}")

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise error_cls(
                f"terraform {args[0]} exited with code {result.returncode}: {output}"
            )

        return result.stdout

    def fmt_check(self) -> str:
        return self.run(["fmt", "-check", "-recursive", "-diff", "-no-color"], FormatViolation)

    def init(self, backend_config: Optional[Dict[str, str]] = None) -> str:
        args = ["init", "-input=false", "-no-color"]
        for key, value in (backend_config or {}).items():
            args.append(f"-backend-config={key}={value}")
        return self.run(args, InitFailure)

    def validate(self) -> str:
        return self.run(["validate", "-no-color"], ValidationFailure)

    def plan(
        self,
        out: Optional[str] = None,
        destroy: bool = False,
        var_files: Optional[List[str]] = None,
    ) -> str:
        args = ["plan", "-input=false", "-no-color"]
        if destroy:
            args.append("-destroy")
        for var_file in var_files or []:
            args.append(f"-var-file={var_file}")
        if out:
            args.append(f"-out={out}")
        return self.run(args, PlanFailure)

    def apply(self, plan_file: Optional[str] = None, destroy: bool = False) -> str:
        args = ["apply", "-input=false", "-no-color", "-auto-approve"]
        # A saved plan already carries the destroy mode
        if destroy and not plan_file:
            args.append("-destroy")
        if plan_file:
            args.append(plan_file)
        return self.run(args, ApplyFailure)

    def output(self) -> Dict[str, Any]:
        raw = self.run(["output", "-json", "-no-color"], ApplyFailure)
        try:
            return json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise ApplyFailure(f"Invalid terraform output JSON: {e}")

def format_outputs(outputs: Dict[str, Any]) -> str:
    """Render `terraform output -json` as name = value lines."""
    lines = []
    for name in sorted(outputs):
        output = outputs[name]
        if output.get("sensitive"):
            value = "(sensitive value)"
        else:
            value = json.dumps(output.get("value"))
        lines.append(f"{name} = {value}")
    return "\n".join(lines)
