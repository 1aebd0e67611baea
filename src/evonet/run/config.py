import configparser
import os
from evonet.activations import activations

class Config:

    @staticmethod
    def _parse_activation_options(raw_options):
        """
        Parse activation_options from string to list.

        Parameters:
            raw_options: Either "all", a comma-separated list, or already a list

        Returns:
            List of activation function names
        """
        # If already a list, validate it and return it
        if isinstance(raw_options, list):
            parsed = raw_options
        elif raw_options == 'all':
            return list(activations.keys())
        else:
            # Parse comma-separated list
            parsed = [opt.strip() for opt in raw_options.split(',')]

        for opt in parsed:
            if opt not in activations:
                raise ValueError(f"Invalid activation function '{opt}' in activation_options")
        return parsed

    def __init__(self, config_file: str | None = None):
        """
        Initialize Config by parsing an INI file, or create a default Config.

        Every option has a default; an INI file only needs to
        list the options whose value differs from the default.

        Parameters:
            config_file: Path to the INI configuration file.
                         If None, creates a default Config for manual attribute setting.
        """
        self._set_defaults()

        if config_file is None:
            return

        if not os.path.exists(config_file):
            raise FileNotFoundError(f"Configuration file '{config_file}' not found")

        parser = configparser.ConfigParser()
        parser.read(config_file)

        # Helper function to safely parse values
        def get_value(section, key, value_type, default):
            try:
                raw_value = parser.get(section, key)
                if raw_value.lower() == 'none':
                    return None
                if value_type == int:
                    return parser.getint(section, key)
                elif value_type == float:
                    return parser.getfloat(section, key)
                elif value_type == bool:
                    return parser.getboolean(section, key)
                elif value_type == str:
                    return raw_value
            except (configparser.NoSectionError, configparser.NoOptionError):
                return default

        # [GENERAL]

        # Whether infeasible operations (e.g. a mutation with no
        # eligible target) should emit a warning.
        self.warnings = get_value('GENERAL', 'warnings', bool, self.warnings)

        # [NETWORK]

        # New connections (when no weight is specified) get a
        # weight drawn uniformly from [-weight_init_range, weight_init_range].
        self.weight_init_range = get_value('NETWORK', 'weight_init_range', float, self.weight_init_range)

        # New hidden and output nodes get a bias drawn
        # uniformly from [-bias_init_range, bias_init_range].
        self.bias_init_range = get_value('NETWORK', 'bias_init_range', float, self.bias_init_range)

        # The squash function assigned to newly created nodes.
        self.default_squash = get_value('NETWORK', 'default_squash', str, self.default_squash)
        if self.default_squash not in activations:
            raise ValueError(f"Invalid activation function '{self.default_squash}' for default_squash")

        # Whether new networks reject backward and self connections.
        self.enforce_acyclic = get_value('NETWORK', 'enforce_acyclic', bool, self.enforce_acyclic)

        # [MUTATION]

        # Range of the additive modification applied by MOD_WEIGHT.
        self.mod_weight_min = get_value('MUTATION', 'mod_weight_min', float, self.mod_weight_min)
        self.mod_weight_max = get_value('MUTATION', 'mod_weight_max', float, self.mod_weight_max)

        # Range of the additive modification applied by MOD_BIAS.
        self.mod_bias_min = get_value('MUTATION', 'mod_bias_min', float, self.mod_bias_min)
        self.mod_bias_max = get_value('MUTATION', 'mod_bias_max', float, self.mod_bias_max)

        # Whether MOD_ACTIVATION and SWAP_NODES may touch output nodes.
        self.mutate_output = get_value('MUTATION', 'mutate_output', bool, self.mutate_output)

        # Whether SUB_NODE reassigns the gaters of the
        # removed node's connections to the bridging connections.
        self.keep_gates = get_value('MUTATION', 'keep_gates', bool, self.keep_gates)

        # Activation functions MOD_ACTIVATION (and ADD_NODE) may choose from.
        # Allowed values:
        #   "all"                - every registered activation function
        #   comma-separated list - a subset, e.g. "logistic, tanh, relu"
        self.activation_options = get_value('MUTATION', 'activation_options', str, 'all')

        # [CROSSOVER]

        # Probability that an inherited disabled connection is re-enabled.
        self.reenable_probability = get_value('CROSSOVER', 'reenable_probability', float, self.reenable_probability)

        # [TRAINING]

        # The learning rate used when 'train' is called without one.
        self.learning_rate = get_value('TRAINING', 'learning_rate', float, self.learning_rate)

        # The momentum used when 'train' is called without one.
        self.momentum = get_value('TRAINING', 'momentum', float, self.momentum)

        # Number of samples between weight updates.
        self.batch_size = get_value('TRAINING', 'batch_size', int, self.batch_size)

        # Print training progress every 'log_interval' iterations (0 = silent).
        self.log_interval = get_value('TRAINING', 'log_interval', int, self.log_interval)

        # Mixed precision loss scaling: the initial scale, its bounds, and how
        # many overflow-free steps must pass before the scale is doubled.
        self.loss_scale                = get_value('TRAINING', 'loss_scale', float, self.loss_scale)
        self.loss_scale_min            = get_value('TRAINING', 'loss_scale_min', float, self.loss_scale_min)
        self.loss_scale_max            = get_value('TRAINING', 'loss_scale_max', float, self.loss_scale_max)
        self.loss_scale_increase_every = get_value('TRAINING', 'loss_scale_increase_every', int, self.loss_scale_increase_every)

        # [EVOLUTION]

        # Complexity penalty per hidden node, connection and gate.
        self.growth = get_value('EVOLUTION', 'growth', float, self.growth)

        # Number of times each genome is evaluated (scores are averaged).
        self.amount = get_value('EVOLUTION', 'amount', int, self.amount)

        # Number of consecutive generations with a non-finite
        # error after which an evolution run is aborted.
        self.max_degenerate = get_value('EVOLUTION', 'max_degenerate', int, self.max_degenerate)

    def _set_defaults(self):
        self.warnings = False

        self.weight_init_range = 0.1
        self.bias_init_range   = 0.1
        self.default_squash    = "logistic"
        self.enforce_acyclic   = False

        self.mod_weight_min     = -1.0
        self.mod_weight_max     =  1.0
        self.mod_bias_min       = -1.0
        self.mod_bias_max       =  1.0
        self.mutate_output      = True
        self.keep_gates         = True
        self.activation_options = list(activations.keys())

        self.reenable_probability = 0.25

        self.learning_rate             = 0.3
        self.momentum                  = 0.0
        self.batch_size                = 1
        self.log_interval              = 0
        self.loss_scale                = 1024.0
        self.loss_scale_min            = 1.0
        self.loss_scale_max            = 65536.0
        self.loss_scale_increase_every = 200

        self.growth         = 0.0001
        self.amount         = 1
        self.max_degenerate = 5

    def __setattr__(self, name, value):
        """
        Override 'setattr' to automatically parse activation_options when set.
        This allows users to write config.activation_options = "logistic, tanh" and
        have it automatically converted to the list of activation names.
        """
        if name == 'activation_options':
            value = self._parse_activation_options(value)
        super().__setattr__(name, value)
