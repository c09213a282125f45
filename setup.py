"""Setup configuration for Hackathon Account Baseline."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="hackathon-account-baseline",
    version="1.0.0",
    author="Hackathon Cloud Team",
    description="Deploys budget alerts, AWS Config monitoring and guardrail SCPs to hackathon team accounts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "hackathon-baseline=hackathon_baseline.cli:main",
            "hackathon-baseline-scp=hackathon_baseline.cli:scp_main",
        ],
    },
)
