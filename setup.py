from pathlib import Path

from setuptools import find_namespace_packages, setup

# Load packages from requirements.txt
BASE_DIR = Path(__file__).parent
with open(Path(BASE_DIR, "requirements.txt")) as file:
    required_packages = [ln.strip() for ln in file.readlines() if ln.strip() and not ln.startswith("#")]

# Define our package
setup(
    name="quiz-engine",
    version="0.1",
    description="Quiz grading and adaptive-performance engine with LLM-generated content",
    python_requires=">=3.10",
    packages=find_namespace_packages(include=["quiz_engine*"]),
    install_requires=required_packages,
    extras_require={
        "test": ["pytest>=7.0"],
        "dev": ["pre-commit==2.19.0", "pytest>=7.0"],
    },
)
