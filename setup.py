#!/usr/bin/env python

# Project skeleton maintained at https://github.com/jaraco/skeleton

import setuptools

name = 'irccore'
description = 'Single-connection IRC (Internet Relay Chat) client core on asyncio'

params = dict(
    name=name,
    version='1.0.0',
    description=description or name,
    packages=setuptools.find_packages(exclude=['irccore.tests']),
    include_package_data=True,
    package_data={name: ['codes.txt']},
    python_requires='>=3.8',
    install_requires=[
        'jaraco.collections',
        'jaraco.text',
        'jaraco.logging',
        'jaraco.functools>=1.20',
        'jaraco.stream',
        'more_itertools',
        'tempora>=1.6',
        'importlib_resources; python_version < "3.12"',
    ],
    extras_require={
        'testing': [
            # upstream
            'pytest>=6',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Framework :: AsyncIO",
        "Topic :: Communications :: Chat :: Internet Relay Chat",
    ],
    entry_points={},
)
if __name__ == '__main__':
    setuptools.setup(**params)
