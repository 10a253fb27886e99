from __future__ import annotations

from csctl.core.config import ADDON_CONFIG_FILE_NAME, ADDON_VALUES_FILE_NAME

METADATA_FILE = "metadata.yaml"
HASHES_FILE = "hashes.json"
NODE_IMAGES_FILE = "node-images.yaml"

CLUSTER_CLASS_DIR = "cluster-class"
CLUSTER_ADDON_DIR = "cluster-addon"
NODE_IMAGE_DIR = "node-image"
CLUSTER_ADDON_VALUES_FILE = ADDON_VALUES_FILE_NAME
CLUSTER_ADDON_CONFIG_FILE = ADDON_CONFIG_FILE_NAME
CHART_FILE = "Chart.yaml"

METADATA_API_VERSION = "metadata.clusterstack.x-k8s.io/v1alpha1"

DEFAULT_OUTPUT_DIR = "./.release"
PLUGIN_PREFIX = "csctl-"
PLUGIN_COMMAND = "create-node-images"

# OCI artifact and layer media types
CLUSTER_STACK_ARTIFACT_TYPE = "application/vnd.clusterstack.release"
CLUSTER_ADDON_CONFIG_MEDIA_TYPE = "application/vnd.clusterstack.clusteraddon.config.v1+yaml"
METADATA_MEDIA_TYPE = "application/vnd.clusterstack.metadata.v1+yaml"
NODE_IMAGE_CONFIG_MEDIA_TYPE = "application/vnd.clusterstack.nodeimages.config.v1+yaml"
HASHES_MEDIA_TYPE = "application/vnd.clusterstack.hashes.v1+json"
CLUSTER_ADDON_MEDIA_TYPE = "application/vnd.clusterstack.clusteraddon.v1.tar+gzip"
CLUSTER_CLASS_MEDIA_TYPE = "application/vnd.clusterstack.clusterclass.v1.tar+gzip"
NODE_IMAGE_MEDIA_TYPE = "application/vnd.clusterstack.nodeimage.v1.tar+gzip"
