"""
Marvin - LMS account, custom data and content tools

Installation:
    pip install -e .

This installs the 'marvin' command globally in your environment.
"""

from setuptools import setup, find_packages
import os

# Read README for long description
long_description = ''
if os.path.exists('README.md'):
    with open('README.md', 'r', encoding='utf-8') as f:
        long_description = f.read()

setup(
    name='marvin-lms',
    version='1.0.0',
    description='SIS account import, custom data and content conversion for Canvas-style LMS data',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Dale Chapman',
    author_email='',
    license='MIT',

    # Only the marvin package; tests are not installed
    packages=find_packages(include=['marvin', 'marvin.*']),

    include_package_data=True,

    python_requires='>=3.9',

    install_requires=[
        'click>=8.0',
        'PyYAML>=6.0',
        'requests>=2.28',
        'beautifulsoup4>=4.11',
        'lxml>=4.9',
    ],

    extras_require={
        'dev': [
            'pytest>=7.4',
            'pytest-cov>=4.1',
            'pytest-mock>=3.11',
        ],
    },

    # CLI entry point - this creates the 'marvin' command
    entry_points={
        'console_scripts': [
            'marvin=marvin.cli:cli',
        ],
    },

    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Education',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Education',
    ],

    keywords='canvas lms education sis qti',
)
