# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Capture layer.

Bridges the relay's MQTT feed into Redis Streams and holds the shared
configuration used by every process.
"""
