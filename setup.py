"""Setup script for familycal-lite."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# requirements.txt holds runtime pins first; everything after the "# Testing"
# header is only needed to run the test suite
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    section = requirements
    for raw_line in requirements_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.lower().startswith("# testing"):
            section = test_requirements
            continue
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue
        section.append(line)

setup(
    name="familycal-lite",
    version="0.1.0",
    description="Upcoming occurrences from an ICS calendar feed, for small dashboards",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="familycal contributors",
    # Package configuration
    packages=find_packages(include=["familycal_lite", "familycal_lite.*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Environment :: Web Environment",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar ics icalendar rrule e-ink dashboard aiohttp",
    entry_points={
        "console_scripts": [
            "familycal=familycal_lite.__main__:main",
        ],
    },
    zip_safe=False,
)
