from setuptools import find_packages, setup
import os
from glob import glob

package_name = 'plane_seg_ri'

setup(
    name=package_name,
    version='0.1.0',
    packages=find_packages(exclude=['test']),
    data_files=[
        ('share/ament_index/resource_index/packages',
            ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        (os.path.join('share', package_name, 'launch'), glob('launch/*.launch.py')),
        (os.path.join('share', package_name, 'config'), glob('config/*.yaml')),
    ],
    install_requires=[
        'setuptools',
        'numpy',
        'scipy',
    ],
    zip_safe=True,
    maintainer='plane_seg',
    maintainer_email='plane_seg@example.com',
    description='Plane segmentation robot interface: sensor pose to look direction, '
                'block segmentation and hull visualization',
    license='BSD-3-Clause',
    extras_require={
        'open3d': [
            'open3d',
        ],
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'plane_seg_node = plane_seg_ri.plane_seg_node:main',
        ],
    },
)
