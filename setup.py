#!/usr/bin/env python3
"""Setup script for tagrunner."""

import re
import subprocess
from pathlib import Path

from setuptools import find_packages, setup
from setuptools.command.build_py import build_py
from setuptools.command.install import install

HERE = Path(__file__).parent
VERSION_FILE = HERE / "tagrunner" / "_version.py"


def git_commit() -> str:
    try:
        out = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=HERE, capture_output=True, text=True, check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return "unknown"
    return out.stdout.strip()


def stamp_git_commit():
    """Write the current commit into TAGRUNNER_GIT_COMMIT in _version.py."""
    if not VERSION_FILE.exists():
        return
    commit = git_commit()
    text = re.sub(
        r'^TAGRUNNER_GIT_COMMIT = .*$',
        f'TAGRUNNER_GIT_COMMIT = "{commit}"',
        VERSION_FILE.read_text(encoding="utf-8"),
        flags=re.MULTILINE,
    )
    VERSION_FILE.write_text(text, encoding="utf-8")
    print(f"Stamped {VERSION_FILE.name} with commit {commit}")


class StampCommitMixin:
    def run(self):
        stamp_git_commit()
        super().run()


class BuildPyCommand(StampCommitMixin, build_py):
    pass


class InstallCommand(StampCommitMixin, install):
    pass


def read_version() -> str:
    # exec instead of import: dependencies may not be installed yet
    namespace = {}
    if VERSION_FILE.exists():
        exec(VERSION_FILE.read_text(encoding="utf-8"), namespace)
    return namespace.get("TAGRUNNER_VERSION", "0.0.0")


def read_requirements():
    path = HERE / "requirements.txt"
    if not path.exists():
        return []
    lines = (line.strip() for line in path.read_text(encoding="utf-8").splitlines())
    return [line for line in lines if line and not line.startswith("#")]


readme = HERE / "README.md"

setup(
    name="tagrunner",
    version=read_version(),
    description="Phase-driven coding agent that acts on streamed XML action tags",
    long_description=readme.read_text(encoding="utf-8") if readme.exists() else "",
    long_description_content_type="text/markdown",
    author="tagrunner contributors",
    python_requires=">=3.8",
    install_requires=read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "mypy>=1.0.0",
        ],
    },
    packages=find_packages(exclude=["tests", "tests.*"]),
    entry_points={
        "console_scripts": ["tagrunner=tagrunner.main:main"],
    },
    cmdclass={"build_py": BuildPyCommand, "install": InstallCommand},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Code Generators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="llm agent openrouter ollama streaming xml-actions",
)
