import os
import re

from setuptools import setup

long_description = """
Small daemon periodically moving swapped out pages back into memory.

Once a minute it checks memory, swap and load average.  If some swap is in use,
there is enough free memory to hold it and the system isn't too busy, it runs
"swapoff -a" followed by "swapon -a", forcing the kernel to read everything back.
Cleaning is delayed while the load is high, but never longer than a configured
maximum wait.
"""

module = 'swap_reaper'

basedir = os.path.dirname(os.path.abspath(__file__))

with open(os.path.join(basedir, '%s.py' % module)) as f:
    _moduletext = f.read()

def readmeta(fieldname):
    return re.search(r'__%s__\s*=\s*"(.*)"' % re.escape(fieldname), _moduletext).group(1).strip()

setup(
    name='swap-reaper',
    version=readmeta('version'),
    description='Daemon periodically cleaning swap using "swapoff -a" and "swapon -a"',
    long_description=long_description.strip(),
    license='Apache-2.0',
    url='https://github.com/essentialkaos/swap-reaper',

    author=readmeta('author'),
    author_email=readmeta('email'),

    py_modules=[module],
    zip_safe=False,
    python_requires='>=3.8',

    extras_require=dict(
        yaml=['PyYAML'],
        toml=['tomli; python_version < "3.11"'],
        test=['pytest', 'PyYAML'],
        build=['twine', 'wheel'],
    ),

    entry_points={
        "console_scripts": ['swap-reaper=%s:main' % module]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: POSIX :: Linux",
        "Topic :: Utilities",
        "Topic :: System :: Systems Administration",
        "Programming Language :: Python :: 3",
    ],
)
