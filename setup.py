from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="ledger-multisig-harness",
    version="1.0.0",
    author="volkb79-2",
    description="End-to-end test harness for multi-signature authorization on a Stellar test network",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=[
        "asset_registry",
        "authorization",
        "balance_reporter",
        "harness_config",
        "ledger_client",
        "ledger_client_mock",
        "ledger_models",
        "outcomes",
        "provisioning",
        "reporting",
        "scenario",
        "trustlines",
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "ledger-harness=scenario:main",
        ],
    },
)
