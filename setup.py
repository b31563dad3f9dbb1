#!/usr/bin/env python3

import setuptools

setuptools.setup(
    name='codeverdict',
    version='1.0.0',
    description='Static complexity estimation, code equivalence and verdicts for programming exercise submissions',
    packages=['codeverdict', 'codeverdict.extract', 'codeverdict.tac'],
    package_data={'codeverdict': ['config/*.yaml', 'logic/*.json']},
    python_requires='>=3.11',
    install_requires=[
        'PyYAML',
        'pydantic>=2',
        'colorlog',
        'esprima',
        'tree-sitter',
        'tree-sitter-language-pack',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'codeverdict=codeverdict.evaluate:main',
        ],
    },
)
