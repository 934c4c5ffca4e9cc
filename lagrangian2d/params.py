"""
Runtime parameter loading.

Parameters live in pyro-style ``[section]`` / ``key = value`` files: the
package ``_defaults`` first, then a problem inputs file.
"""

import os
from typing import Any, Dict, Optional

from pyro.util import runparams

PKG_DIR = os.path.dirname(os.path.abspath(__file__))


def problem_inputs_file(problem_name: str) -> str:
    return os.path.join(PKG_DIR, "problems", problem_name, f"inputs.{problem_name}")


def load_params(problem_name: Optional[str] = None,
                inputs_file: Optional[str] = None,
                overrides: Optional[Dict[str, Any]] = None):
    """
    Build the runtime parameters of a run.

    Args:
        problem_name: Problem whose inputs file is read when inputs_file
            is not given
        inputs_file: Explicit inputs file
        overrides: "section.key" -> value pairs applied last

    Returns:
        RuntimeParameters
    """
    rp = runparams.RuntimeParameters()
    rp.load_params(os.path.join(PKG_DIR, "_defaults"))

    if inputs_file is None and problem_name is not None:
        inputs_file = problem_inputs_file(problem_name)
    if inputs_file is not None:
        if not os.path.isfile(inputs_file):
            raise FileNotFoundError(f"inputs file not found: {inputs_file}")
        rp.load_params(inputs_file)

    if overrides:
        apply_overrides(rp, overrides)

    return rp


def apply_overrides(rp, overrides: Dict[str, Any]):
    """
    Replace existing runtime parameters.

    Raises:
        KeyError: If a key is not a known parameter
    """
    for key, value in overrides.items():
        if key not in rp.params:
            raise KeyError(f"unknown runtime parameter {key}")
        rp.params[key] = value
