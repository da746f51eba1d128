"""
Client-side tracking: samples positions, matches them against venue
locations and reports venue membership changes over the popularity socket.
"""
