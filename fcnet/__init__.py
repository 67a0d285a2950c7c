"""
Fully Connected Neural Network Trainer from Scratch

This package implements a feedforward classifier for flattened images
(e.g. Fashion-MNIST) using only NumPy: hand-derived backpropagation,
gradient descent with optional momentum and L2 regularization, learning
rate schedules, and a mini-batch training loop with early stopping.

Modules:
    matrix: Dense matrix primitives (row-parallel multiply)
    activations: ReLU, sigmoid, tanh, softmax, linear and derivatives
    layers: Fully connected layer with forward/backward passes
    optimizer: Gradient descent and momentum update rules
    scheduler: Per-epoch learning rate policies
    network: Layer stack, loss, and training loop
    tuning: Hyperparameter grid search
    utils: Shuffling, batching, CSV loading, and prediction export
    exceptions: Error types

Reference:
    "Learning representations by back-propagating errors"
    (Rumelhart, Hinton & Williams, 1986)
"""

__version__ = "1.0.0"
__author__ = "fcnet contributors"
