# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Command line pipelines that fit a bundled model and write its predictions."""
