#!/usr/bin/env python

from setuptools import setup
from NtHive import _version_

setup(name='python-nthive',
      version=_version_,
      description='Read access to Windows NT registry hive files.',
      author='Willi Ballenthin',
      author_email='willi.ballenthin@gmail.com',
      license='Apache License (2.0)',
      packages=['NtHive'],
      python_requires='>=3.6',
      classifiers = ["Programming Language :: Python",
                     "Programming Language :: Python :: 3",
                     "Operating System :: OS Independent",
                     "License :: OSI Approved :: Apache Software License"],
      extras_require={'test': ['pytest']}
     )
