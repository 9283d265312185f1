#!/usr/bin/env python3
import sys

from setuptools import setup

from steevesync import __version__ as VERSION

if sys.version_info < (3, 7):
    sys.exit('Python 3.7 is required to run Steeve-Sync')

setup(
    name='steeve-sync',
    version=VERSION,
    license='MIT',
    author='Jay Oster',
    author_email='jay@kodewerx.org',
    packages=[
        'steevesync',
        'steevesync.util',
        'steevesync.util.steam',
    ],
    scripts=['bin/steeve-sync'],
    zip_safe=False,
    install_requires=[
        'platformdirs',
        'PyYAML',
        'watchdog',
    ],
    extras_require={
        'test': ['pytest'],
    },
    url='https://github.com/parasyte/steeve-sync',
    description='Synchronize your Deep Rock Galactic saves between the Xbox and Steam editions',
    long_description="""Steeve-Sync watches the save folders of the Steam and Xbox
    editions of Deep Rock Galactic and copies the most recent save over the other
    one, keeping a de-duplicated history of backups of every overwritten save.""",
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: End Users/Desktop',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Games/Entertainment'
    ],
)
