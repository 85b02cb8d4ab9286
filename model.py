"""
Feed-forward regression network that predicts wait time from an encoded message.
"""

import torch
import torch.nn as nn


class WaitTimeRegressor(nn.Module):
    """
    Small multilayer perceptron: (Linear -> ReLU) x n_layers -> Linear(1).
    The defaults give a single hidden layer of 10 units.
    """

    def __init__(
        self,
        input_dim: int,
        hidden_units: int = 10,
        n_layers: int = 1,
        dropout: float = 0.0
    ):
        super().__init__()
        if input_dim < 1:
            raise ValueError(f"input_dim must be positive, got {input_dim}")
        if n_layers < 1:
            raise ValueError(f"n_layers must be positive, got {n_layers}")

        self.input_dim = input_dim
        self.hidden_units = hidden_units
        self.n_layers = n_layers
        self.dropout = dropout

        layers = []
        in_features = input_dim
        for _ in range(n_layers):
            layers.append(nn.Linear(in_features, hidden_units))
            layers.append(nn.ReLU())
            if dropout > 0:
                layers.append(nn.Dropout(dropout))
            in_features = hidden_units
        self.hidden = nn.Sequential(*layers)
        self.head = nn.Linear(hidden_units, 1)

        self.apply(self._init_weights)

        print(f"Model initialized with {self.count_parameters():,} parameters")

    def _init_weights(self, module):
        """Glorot-uniform weights and zero biases for every linear layer."""
        if isinstance(module, nn.Linear):
            torch.nn.init.xavier_uniform_(module.weight)
            if module.bias is not None:
                torch.nn.init.zeros_(module.bias)

    def count_parameters(self) -> int:
        """Count total trainable parameters."""
        return sum(p.numel() for p in self.parameters() if p.requires_grad)

    @property
    def config(self) -> dict:
        return {
            'input_dim': self.input_dim,
            'hidden_units': self.hidden_units,
            'n_layers': self.n_layers,
            'dropout': self.dropout,
        }

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.head(self.hidden(x))

    @torch.no_grad()
    def predict(self, x: torch.Tensor) -> torch.Tensor:
        """Predict one wait time per row of x."""
        self.eval()
        return self(x).squeeze(-1)


def get_device():
    """Get the best available device (MPS, CUDA, or CPU)."""
    if torch.backends.mps.is_available():
        device = torch.device("mps")
        print("Using Apple Silicon GPU (MPS)")
    elif torch.cuda.is_available():
        device = torch.device("cuda")
        print("Using NVIDIA GPU (CUDA)")
    else:
        device = torch.device("cpu")
        print("Using CPU")
    return device
