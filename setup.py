from setuptools import setup, find_packages

def parse_requirements(requirements):
    with open(requirements) as f:
        return [l.strip('\n') for l in f if l.strip('\n') and not l.startswith('#')]

requirements = parse_requirements("requirements.txt")

setup(
    name='authz_backend',
    version='0.0.1',
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    package_dir={"": "src"},
    packages=find_packages("src"),
    entry_points={
        "console_scripts": [
            "authz=authz_backend.cli.cli:cli",
        ],
    }
)
