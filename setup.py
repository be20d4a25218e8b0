"""Setup for Invigilator Timer.

Install for development:
    pip install -e ".[test]"

Build a macOS .app bundle:
    pip install py2app
    python setup.py py2app
"""

import sys

from setuptools import setup, find_packages

APP = ["main.py"]
OPTIONS = {
    "argv_emulation": False,
    "plist": {
        "CFBundleName": "InvigilatorTimer",
        "CFBundleDisplayName": "Invigilator Timer",
        "CFBundleIdentifier": "com.invigilatortimer.app",
        "CFBundleVersion": "0.1.0",
        "CFBundleShortVersionString": "0.1.0",
        "LSMinimumSystemVersion": "13.0",
    },
}

# py2app is only needed (and only installable) when building the bundle.
extra = {}
if "py2app" in sys.argv:
    extra = dict(app=APP, options={"py2app": OPTIONS}, setup_requires=["py2app"])

setup(
    name="InvigilatorTimer",
    version="0.1.0",
    description="Desk-centric exam countdown timer with D.P. time tracking",
    packages=find_packages(include=["invigilator", "invigilator.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PyQt6>=6.4",
        "SQLAlchemy>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": ["invigilator-timer=invigilator.__main__:main"],
    },
    **extra,
)
