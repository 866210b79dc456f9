"""
Test runner script for Stack Viewer.

Ensures src is on PYTHONPATH and runs pytest (or unittest with --unittest).
Run from project root:
  python tests/run_tests.py
  python tests/run_tests.py --unittest   # use unittest instead of pytest
With venv activated from project root:
  .venv\\Scripts\\activate   (Windows)
  source .venv/bin/activate   (Linux/macOS)
  python tests/run_tests.py
"""

import os
import sys
import subprocess


def main():
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    src_dir = os.path.join(project_root, "src")
    tests_dir = os.path.join(project_root, "tests")

    os.chdir(project_root)
    env = os.environ.copy()
    env["PYTHONPATH"] = os.pathsep.join([src_dir, tests_dir, env.get("PYTHONPATH", "")])

    use_unittest = "--unittest" in sys.argv
    extra_args = [a for a in sys.argv[1:] if a != "--unittest"]

    if use_unittest:
        return subprocess.call(
            [sys.executable, "-m", "unittest", "discover", "-s", "tests", "-p", "test_*.py", "-v"],
            env=env,
            cwd=project_root,
        )
    return subprocess.call(
        [sys.executable, "-m", "pytest", "tests", "-v", "--tb=short"] + extra_args,
        env=env,
        cwd=project_root,
    )


if __name__ == "__main__":
    sys.exit(main())
