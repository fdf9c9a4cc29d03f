"""clipshuffle — randomized clip shuffling and frame compositing.

Plan a random sequence of sub-clips from a pool of source videos, then
render them frame by frame (center crop, optional zoom window, optional
mirror, short overlap with the previous clip) into a single encoded video
of the requested length.
"""
