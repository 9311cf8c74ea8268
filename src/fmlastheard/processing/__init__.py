# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Processing layer.

Turns relay messages into the talker log, the presence view and the
periodically published usage statistics.
"""
