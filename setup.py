#
# Copyright © 2020-2024 VMware, Inc.
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-only
#

import os
from version import get_builder_version
from setuptools import setup, find_packages

here = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(here, "requirements.txt")) as requirements_txt:
    REQUIRES = requirements_txt.read().splitlines()

setup(
    name='bt-ec2',
    description='Converts appliance ISO builds to EC2 EBS images',
    packages=find_packages(include=['bt_ec2']),
    install_requires=REQUIRES,
    extras_require={
        'test': ['pytest'],
    },
    python_requires='>=3.8',
    include_package_data=True,
    zip_safe=False,
    entry_points={
        'console_scripts': [
            'bt-ec2 = bt_ec2.ec2builder:main',
        ]
    },
    version=get_builder_version(),
)
