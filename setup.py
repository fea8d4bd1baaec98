"""
Setup script for Balance - Terminal core for envelope files and user messaging.

Created by Balance Terminal contributors

This package provides:
- Reversible .balance / .causality envelopes for text and image files
- User accounts with Argon2id password hashing
- Chat and mail messaging with in-chat file attachments
- A local recent-chats cache and offline message log
- A command-line client
"""

from setuptools import setup, find_packages
import os

this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='balance-terminal',
    version='1.0.0',
    author='Balance Terminal contributors',
    description='Terminal core for reversible file envelopes and user-to-user messaging',
    long_description=long_description,
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'Topic :: Communications :: Chat',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Environment :: Console',
    ],
    python_requires='>=3.8',
    install_requires=[
        'argon2-cffi>=23.1.0',
        'rich>=13.7.0',
        'aiofiles>=23.2.1',
        'tomli>=2.0.1; python_version<"3.11"',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'balance=balance.main:main',
        ],
    },
)
